import os
from app import create_app
from utils.config_validator import require_production_config

# Production deployments refuse to start without secrets and SMS delivery
if os.environ.get('FLASK_ENV') == 'production':
    require_production_config()

# Create the app instance for gunicorn
app = create_app()

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=False)
