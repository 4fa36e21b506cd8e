"""
QR Meeting Attendance - Main Application

Entry point for running the attendance API with the Flask development server.
The configuration is chosen by the FLASK_ENV environment variable
(development, testing or production).
"""

import os
import logging

from meeting_attendance import create_app

app = create_app()
logger = logging.getLogger(__name__)

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    logger.info(f"Starting attendance API on port {port}")
    app.run(debug=app.config['DEBUG'], host='0.0.0.0', port=port)
