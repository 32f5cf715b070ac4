# WSGI entry point for the rental lifecycle API

import sys
import os

# Add project to path
project_path = os.path.dirname(os.path.abspath(__file__))
if project_path not in sys.path:
    sys.path.insert(0, project_path)

# Load environment variables from .env file if present
from dotenv import load_dotenv
env_path = os.path.join(project_path, '.env')
if os.path.exists(env_path):
    load_dotenv(env_path)

os.environ.setdefault('FLASK_ENV', 'production')

from rentalhub.database import init_db
from rentalhub.main import create_app

init_db()
application = create_app()
