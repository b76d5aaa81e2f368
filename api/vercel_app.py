"""
Vercel entry point for the PQRS case tracker API.

Services are wired once per cold start; MongoDB and broker connections are
opened lazily by the first request that needs them.
"""

import os
from app import create_app

# Vercel expects the WSGI application to be named 'app'
app = create_app()

if __name__ == "__main__":
    app.run(debug=False, host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
