from application import create_app
from status_api import status_bp

app = create_app()

# Register Blueprints
app.register_blueprint(status_bp)
