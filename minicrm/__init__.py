from flask import Flask, jsonify
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate

db = SQLAlchemy()
jwt = JWTManager()
migrate = Migrate()


def create_app(config_object='minicrm.config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.sort_keys = False
    CORS(app, origins=app.config['CORS_ORIGINS'],
         methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
         allow_headers=['Content-Type', 'Authorization'])

    from .utils.logging_utils import configure_logging
    configure_logging(app)

    db.init_app(app)
    jwt.init_app(app)
    migrate.init_app(app, db)

    with app.app_context():
        from .errors import register_error_handlers
        from .routes import main
        from .auth import auth
        from .commands import register_commands
        from . import models
        register_error_handlers(app)
        app.register_blueprint(main, url_prefix='/api')
        app.register_blueprint(auth, url_prefix='/api/auth')
        register_commands(app)
        db.create_all()

    @app.route('/')
    def index():
        return jsonify({'message': 'MiniCRM API is running'})

    return app
