from flask import Blueprint, jsonify
from imposter import db
from sqlalchemy import text

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Imposter game server!'})

@main.route('/health')
def health():
    db.session.execute(text('SELECT 1'))
    return jsonify({'status': 'ok'})
