# config.py
import os

from dotenv import load_dotenv

load_dotenv()

# --- Fetch Client ---
CRAWLER_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept-Language': 'id-ID,id;q=0.9,en-US;q=0.8,en;q=0.7',
}

FETCH_TOTAL_TIMEOUT_SECONDS = int(os.getenv('FETCH_TOTAL_TIMEOUT_SECONDS', 30))
FETCH_CONNECT_TIMEOUT_SECONDS = int(os.getenv('FETCH_CONNECT_TIMEOUT_SECONDS', 10))
FETCH_SOCK_READ_TIMEOUT_SECONDS = int(os.getenv('FETCH_SOCK_READ_TIMEOUT_SECONDS', 25))
FETCH_CONCURRENCY_LIMIT = int(os.getenv('FETCH_CONCURRENCY_LIMIT', 50))
FETCH_MAX_ATTEMPTS = int(os.getenv('FETCH_MAX_ATTEMPTS', 3))
FETCH_RETRY_MIN_SECONDS = float(os.getenv('FETCH_RETRY_MIN_SECONDS', 1))
FETCH_RETRY_MAX_SECONDS = float(os.getenv('FETCH_RETRY_MAX_SECONDS', 8))

# --- Render Pool (Playwright) ---
RENDER_POOL_SIZE = int(os.getenv('RENDER_POOL_SIZE', 2))
RENDER_TIMEOUT_SECONDS = int(os.getenv('RENDER_TIMEOUT_SECONDS', 60))
RENDER_SETTLE_SECONDS = float(os.getenv('RENDER_SETTLE_SECONDS', 1.5))
RENDER_MAX_ATTEMPTS = int(os.getenv('RENDER_MAX_ATTEMPTS', 2))

# --- Cache ---
# redis | memory | none
CACHE_BACKEND = os.getenv('CACHE_BACKEND', 'redis').strip().lower()
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
LISTING_CACHE_TTL_SECONDS = int(os.getenv('LISTING_CACHE_TTL_SECONDS', 300))
DETAIL_CACHE_TTL_SECONDS = int(os.getenv('DETAIL_CACHE_TTL_SECONDS', 3600))
STREAM_CACHE_TTL_SECONDS = int(os.getenv('STREAM_CACHE_TTL_SECONDS', 3600))

# --- Sessions ---
SESSION_EXPIRY_SKEW_SECONDS = int(os.getenv('SESSION_EXPIRY_SKEW_SECONDS', 30))

# --- Sources ---
OTAKUDESU_BASE_URL = os.getenv('OTAKUDESU_BASE_URL', 'https://otakudesu.best')
SAMEHADAKU_BASE_URL = os.getenv('SAMEHADAKU_BASE_URL', 'https://samehadaku.li')
ANICHIN_BASE_URL = os.getenv('ANICHIN_BASE_URL', 'https://anichin.watch')
LK21_BASE_URL = os.getenv('LK21_BASE_URL', 'https://tv8.lk21official.cc')
KOMIKU_BASE_URL = os.getenv('KOMIKU_BASE_URL', 'https://komiku.cc')
MEIONOVEL_BASE_URL = os.getenv('MEIONOVEL_BASE_URL', 'https://meionovels.com')
DRAMADASH_API_URL = os.getenv('DRAMADASH_API_URL', 'https://www.dramadash.app/api')
MELOLO_API_URL = os.getenv('MELOLO_API_URL', 'https://melolo-api-azure.vercel.app/api/melolo')
DRAMABOX_API_URL = os.getenv('DRAMABOX_API_URL', 'https://dramabox.sansekai.my.id/api')

KOMIKU_LOAD_MORE_MAX_CLICKS = int(os.getenv('KOMIKU_LOAD_MORE_MAX_CLICKS', 150))
DRAMADASH_PAGE_SIZE = int(os.getenv('DRAMADASH_PAGE_SIZE', 20))
MELOLO_PAGE_SIZE = int(os.getenv('MELOLO_PAGE_SIZE', 20))

DRAMADASH_HEADERS = {
    'app-version': '70',
    'lang': 'id',
    'platform': 'android',
    'tz': 'Asia/Bangkok',
    'device-type': 'phone',
    'user-agent': 'okhttp/5.1.0',
    'content-type': 'application/json; charset=UTF-8',
}

# --- Aggregator ---
COMBINED_SEARCH_SOURCES = [
    source.strip()
    for source in os.getenv('COMBINED_SEARCH_SOURCES', 'otakudesu,anichin,dramadash,melolo').split(',')
    if source.strip()
]
