# main.py

# Load .env before settings are read
from dotenv import load_dotenv
load_dotenv(override=True)

from prokip_bridge import create_app

# Uvicorn calls this factory when started with factory=True
app = create_app
