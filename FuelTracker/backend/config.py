"""Backend configuration classes.

Values are read from the environment when this module is imported.
"""
import os


class Config:
    """Base configuration"""

    # Spreadsheet holding the records. An empty worksheet name selects the first sheet.
    GOOGLE_SHEET_ID = os.environ.get('GOOGLE_SHEET_ID', '')
    GOOGLE_WORKSHEET = os.environ.get('GOOGLE_WORKSHEET', '')

    # Service account credentials: a key file, a JSON string, or an email and private key pair
    GOOGLE_SERVICE_ACCOUNT_FILE = os.environ.get('GOOGLE_SERVICE_ACCOUNT_FILE', '')
    GOOGLE_SERVICE_ACCOUNT_INFO = os.environ.get('GOOGLE_SERVICE_ACCOUNT_INFO', '')
    GOOGLE_SERVICE_ACCOUNT_EMAIL = os.environ.get('GOOGLE_SERVICE_ACCOUNT_EMAIL', '')
    GOOGLE_PRIVATE_KEY = os.environ.get('GOOGLE_PRIVATE_KEY', '')

    API_PREFIX = os.environ.get('API_PREFIX', '/api')

    CORS_HEADERS = {
        'Access-Control-Allow-Credentials': 'true',
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Methods': 'GET,POST,PUT,DELETE,OPTIONS',
        'Access-Control-Allow-Headers': (
            'X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, '
            'Content-MD5, Content-Type, Date, X-Api-Version'
        ),
    }


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    GOOGLE_SHEET_ID = 'test-sheet'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
