# api/index.py  (Vercel Python Function entrypoint)
# Serves the report engine routes (/, /materials, /health) unchanged.
from app import app  # app.py builds the module-level app via create_app()

# Vercel looks for a top-level `app` in this file.
