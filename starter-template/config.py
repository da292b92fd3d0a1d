import os
from dotenv import load_dotenv

load_dotenv()

DB_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'databases')


class Config:
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY', 'dev-secret-key-change-in-production')

    # 'local' keeps everything in DB_DIR; 'firebase' needs the two keys below
    LINKPAGE_BACKEND = os.getenv('LINKPAGE_BACKEND', 'local')
    FIREBASE_API_KEY = os.getenv('FIREBASE_API_KEY', '')
    FIREBASE_PROJECT_ID = os.getenv('FIREBASE_PROJECT_ID', '')

    # Database paths
    DB_DIR = DB_DIR
    LINKS_DB = os.path.join(DB_DIR, 'linkpage.db')
    LOG_DB = os.path.join(DB_DIR, 'app_logs.db')

    # Public profile
    PROFILE_NAME = os.getenv('PROFILE_NAME', 'My Links')
    PROFILE_BIO = os.getenv('PROFILE_BIO', 'Everything I make, in one place')
    PROFILE_AVATAR_URL = os.getenv('PROFILE_AVATAR_URL', '')
