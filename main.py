"""
mCODE Classification Service Entry Point

Run with: uvicorn main:app --reload --port 8000
Or: python main.py
"""

from mcode_engine.config import get_settings
from mcode_engine.main import app

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run("mcode_engine.main:app", host=settings.host, port=settings.port, reload=True)
