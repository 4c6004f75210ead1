import os
from datetime import timedelta

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '..', '.env'))


class Config:

    # -------------------------
    # Flask core
    # -------------------------
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me')
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024

    # -------------------------
    # Database
    # -------------------------
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')
    if not SQLALCHEMY_DATABASE_URI:
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{os.path.join(basedir, '..', 'minicrm.db')}"
    elif SQLALCHEMY_DATABASE_URI.startswith('postgres://'):
        # Hosted Postgres providers still hand out the legacy scheme
        SQLALCHEMY_DATABASE_URI = SQLALCHEMY_DATABASE_URI.replace('postgres://', 'postgresql://', 1)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # -------------------------
    # JWT
    # -------------------------
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.getenv('JWT_ACCESS_TOKEN_HOURS', '24')))
    JWT_TOKEN_LOCATION = ['headers']
    # When off, a requested admin role on public sign-up is downgraded to user
    ALLOW_ADMIN_REGISTRATION = os.getenv('ALLOW_ADMIN_REGISTRATION', 'true').lower() in ('true', '1', 'yes')

    # -------------------------
    # CORS
    # -------------------------
    CORS_ORIGINS = os.getenv('CORS_ORIGIN', 'http://localhost:5173').split(',')

    # -------------------------
    # Uploads
    # -------------------------
    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', os.path.join(basedir, '..', 'uploads'))
    PUBLIC_BASE_URL = os.getenv('PUBLIC_BASE_URL', '')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing-secret-key-with-enough-length-for-hs256'
    JWT_SECRET_KEY = SECRET_KEY
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOG_LEVEL = 'WARNING'
