# taxi_backend\run.py
# Main Backend Server: builds the Flask application with its services and runs it.

import atexit

from taxi_backend.config import get_settings, configure_logging
from taxi_backend.api.app import create_app, close_app

settings = get_settings()
configure_logging(settings['LOG_DIR'], settings['LOG_LEVEL'])

app = create_app(settings)
atexit.register(close_app, app)

if __name__ == "__main__":
    app.run(debug=True, port=settings['PORT'])
