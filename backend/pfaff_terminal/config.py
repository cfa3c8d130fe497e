import os
from typing import List
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    def __init__(self):
        # Upstream provider
        self.TIINGO_API_KEY = os.getenv('TIINGO_API_KEY', '')
        self.TIINGO_BASE_URL = os.getenv('TIINGO_BASE_URL', 'https://api.tiingo.com')
        self.NEWS_API_KEY = os.getenv('NEWS_API_KEY', '')

        # Authentication
        self.SESSION_SECRET = os.getenv('SESSION_SECRET', 'your-super-secret-session-key-change-this')
        self.ADMIN_USERNAME = os.getenv('ADMIN_USERNAME', 'admin')
        self.ADMIN_PASSWORD_HASH = os.getenv('ADMIN_PASSWORD_HASH', '')
        self.SESSION_MAX_AGE = int(os.getenv('SESSION_MAX_AGE', 24 * 60 * 60))

        # Rate limiting
        self.LOGIN_RATE_LIMIT = int(os.getenv('LOGIN_RATE_LIMIT', 5))
        self.LOGIN_RATE_WINDOW = int(os.getenv('LOGIN_RATE_WINDOW', 15 * 60))
        self.API_RATE_LIMIT = int(os.getenv('API_RATE_LIMIT', 100))
        self.API_RATE_WINDOW = int(os.getenv('API_RATE_WINDOW', 60))

        # Dashboard watchlists
        self.STOCK_WATCHLIST = _split(os.getenv('STOCK_WATCHLIST', 'AAPL,GOOGL,MSFT,TSLA,AMZN,NVDA'))
        self.ETF_WATCHLIST = _split(os.getenv('ETF_WATCHLIST', 'SPY,QQQ,DIA,IWM,VTI'))
        self.CRYPTO_WATCHLIST = _split(os.getenv('CRYPTO_WATCHLIST', 'btcusd,ethusd,solusd'))
        self.FOREX_WATCHLIST = _split(os.getenv('FOREX_WATCHLIST', 'eurusd,gbpusd,usdjpy'))

        # Server Configuration
        self.PORT = int(os.getenv('PORT', 3000))
        self.HOST = os.getenv('HOST', '0.0.0.0')
        self.CORS_ORIGINS = _split(os.getenv('CORS_ORIGINS', 'http://localhost:3000'))

        # Environment
        self.ENV = os.getenv('NODE_ENV', os.getenv('ENV', 'development'))
        self.DEBUG = self.ENV == 'development'

    @property
    def is_production(self) -> bool:
        return self.ENV == 'production'

    @property
    def upstream_configured(self) -> bool:
        return bool(self.TIINGO_API_KEY)

    @property
    def auth_enabled(self) -> bool:
        return bool(self.ADMIN_PASSWORD_HASH)

    @classmethod
    def from_env(cls, **overrides) -> "Config":
        """Build a fresh config from the current environment, then apply overrides."""
        instance = cls()
        for key, value in overrides.items():
            if not hasattr(instance, key):
                raise AttributeError(f"Unknown config option: {key}")
            setattr(instance, key, value)
        instance.DEBUG = instance.ENV == 'development'
        return instance


# Create configuration instance
config = Config()
