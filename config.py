import os

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Load environment variables from a local .env when present
load_dotenv(os.path.join(BASE_DIR, '.env'))


def _database_url() -> str:
    db_url = os.getenv('DATABASE_URL')
    if not db_url:
        return f"sqlite:///{os.path.join(BASE_DIR, 'gym.db')}"
    # Normalize postgres scheme and ensure SSL for hosted Postgres
    if db_url.startswith('postgres://'):
        db_url = db_url.replace('postgres://', 'postgresql://', 1)
    hosted = any(h in db_url for h in ('render.com', 'supabase.co', 'supabase.com'))
    if hosted and 'sslmode=' not in db_url:
        sep = '&' if '?' in db_url else '?'
        db_url = f"{db_url}{sep}sslmode=require"
    return db_url


def _flag(name: str, default: str = '0') -> bool:
    return os.getenv(name, default) in ('1', 'true', 'True', 'yes')


class Config:
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')

    SUPABASE_URL = os.getenv('SUPABASE_URL') or os.getenv('NEXT_PUBLIC_SUPABASE_URL')
    SUPABASE_SERVICE_ROLE_KEY = os.getenv('SUPABASE_SERVICE_ROLE_KEY')
    SUPABASE_AVATAR_BUCKET = os.getenv('SUPABASE_AVATAR_BUCKET', 'avatars')
    STORAGE_TIMEOUT = int(os.getenv('STORAGE_TIMEOUT', '20'))
    MAX_AVATAR_BYTES = int(os.getenv('MAX_AVATAR_BYTES', str(5 * 1024 * 1024)))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    ENABLE_HSTS = _flag('ENABLE_HSTS')
