"""
Application entry point
Etsy shop sync service

Usage:
    python run.py

Configuration:
    - Copy env.example to .env
    - Adjust the values as needed
"""
import os

from etsy_sync import create_app
from etsy_sync.config import get_config

config_class = get_config()

app = create_app(config_class)

if __name__ == '__main__':
    env = os.environ.get('FLASK_ENV', 'development')
    if env == 'production':
        errors = config_class.validate()
        for error in errors:
            print(f"Configuration problem: {error}")

    print("=" * 60)
    print("Etsy shop sync service")
    print("=" * 60)
    print("Server:  http://localhost:8000")
    print("API:     http://localhost:8000/api")
    print(f"Env:     {env}")
    print(f"DB:      {app.config['SQLALCHEMY_DATABASE_URI']}")
    print(f"Shop:    {app.config.get('ETSY_SHOP_ID') or '(ETSY_SHOP_ID not set)'}")
    print(f"CORS:    {', '.join(config_class.CORS_ORIGINS)}")
    if not app.config.get('API_KEY'):
        print("Warning: API_KEY is not set, POST /api/sync is unprotected")
    print("=" * 60)

    app.run(host='0.0.0.0', port=8000, debug=(env == 'development'), use_reloader=False)
