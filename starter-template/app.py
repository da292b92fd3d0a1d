"""
LinkPage Starter Template
=========================

A ready-to-run link page with the admin dashboard enabled.

Run with:
    python app.py

Visit:
    http://localhost:5000        - Public link page
    http://localhost:5000/admin  - Admin panel (first visit sets up the admin)
"""

import logging

from flask import Flask
from linkpage import LinkPage

from config import Config

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

# Create Flask app
app = Flask(__name__)
app.config.from_object(Config)

# Initialize LinkPage - registers the public page, dashboard and /health
linkpage = LinkPage(app)


# =============================================================================
# Run the app
# =============================================================================

if __name__ == '__main__':
    print("\n" + "=" * 60)
    print("LinkPage Starter Template")
    print("=" * 60)
    print(f"Link page:       http://localhost:5000")
    print(f"Admin Panel:     http://localhost:5000/admin")
    print(f"Health:          http://localhost:5000/health")
    print("=" * 60 + "\n")

    app.run(host='0.0.0.0', port=5000, debug=True, threaded=True)
