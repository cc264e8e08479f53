#!/usr/bin/env python3
"""
Quick runner for Case Access Service
====================================

Usage:
    python -m caseaccess.run
    # or
    python caseaccess/run.py
"""

import uvicorn

if __name__ == "__main__":
    print("Starting Case Access Service...")
    print("API docs: http://localhost:8000/docs")
    print("Health:   http://localhost:8000/health")
    print()

    uvicorn.run(
        "caseaccess.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
