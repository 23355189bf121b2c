"""
WSGI Entry Point for Production Deployment
Guardforce staffing API

Usage with Gunicorn:
    gunicorn wsgi:app

Schema changes are applied with Flask-Migrate:
    FLASK_APP=wsgi.py flask db upgrade
"""
import os

# Set production environment if not already set
if 'FLASK_ENV' not in os.environ:
    os.environ['FLASK_ENV'] = 'production'

from guardforce import create_app

# Create the application instance
app = create_app()

# This is the WSGI application object
application = app

if __name__ == "__main__":
    # Local run only; in production use a WSGI server
    app.run(debug=True, host='0.0.0.0', port=5000)
