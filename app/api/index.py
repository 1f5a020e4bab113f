"""
Vercel serverless function entry point for the FastAPI application.

Vercel automatically detects Python files in the api/ directory.
"""
from __future__ import annotations

import sys
from pathlib import Path

# Add repository root to Python path for Vercel
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.main import app

# Vercel expects the handler to be exported
handler = app
