# =============================================================================
# BoxOffice - Vercel Serverless Entry Point
# Flask WSGI application wrapper for the Vercel Python runtime
# =============================================================================

import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from boxoffice import create_app  # noqa: E402

# Vercel's @vercel/python builder serves the module-level 'app'
app = create_app(os.environ.get('FLASK_ENV', 'production'))
