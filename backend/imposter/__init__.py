from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from imposter.routes import main
    flask_app.register_blueprint(main)

    from imposter.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from imposter.api.accounts import accounts
    flask_app.register_blueprint(accounts, url_prefix='/api')

    from imposter.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from imposter.models import Account
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            for username in ['testuser1', 'testuser2', 'testuser3']:
                db.session.add(Account(username=username))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('rooms-gc')
    def rooms_gc_command():
        """Deletes expired and abandoned rooms."""
        from imposter.services.rooms.store import purge_expired
        with flask_app.app_context():
            removed = purge_expired()
            print(f'Removed {len(removed)} room(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(rooms_gc_command)

    return flask_app
