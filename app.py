import logging
import os

from flask import Flask, current_app, request, jsonify
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from config import Config
from models import db, Member
from renewal import PLANS, plan_months, compute_next_payment_date, utcnow
from storage import AvatarStorage, StorageError
import repository
from repository import ValidationError, MemberConflict, MemberNotFound

logger = logging.getLogger(__name__)

migrate = Migrate()

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'

# Generic messages for unexpected failures, per endpoint
FAILURE_MESSAGES = {
    'create_member': 'Failed to create member',
    'update_member': 'Failed to update member',
    'delete_member': 'Failed to delete member',
    'upload_avatar': 'Failed to upload file',
}


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'), format=LOG_FORMAT)
    # Plan labels are Vietnamese; keep them readable in responses
    app.json.ensure_ascii = False

    db.init_app(app)
    migrate.init_app(app, db)
    app.extensions['avatar_storage'] = AvatarStorage.from_config(app.config)

    register_hooks(app)
    register_error_handlers(app)
    register_routes(app)

    with app.app_context():
        _ensure_schema()
    return app


def _ensure_schema():
    db.create_all()


def _storage() -> AvatarStorage:
    return current_app.extensions['avatar_storage']


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(['JSON object body required'])
    return data


def register_hooks(app: Flask):
    # Basic security headers
    @app.after_request
    def set_security_headers(resp):
        resp.headers['X-Content-Type-Options'] = 'nosniff'
        resp.headers['X-Frame-Options'] = 'DENY'
        resp.headers['Referrer-Policy'] = 'no-referrer'
        if app.config.get('ENABLE_HSTS'):
            resp.headers['Strict-Transport-Security'] = 'max-age=63072000; includeSubDomains; preload'
        return resp


def register_error_handlers(app: Flask):
    @app.errorhandler(ValidationError)
    def handle_validation(e):
        return jsonify({'error': '; '.join(e.errors), 'details': e.errors}), 400

    @app.errorhandler(MemberConflict)
    def handle_conflict(e):
        return jsonify({'error': str(e), 'fields': e.fields}), 409

    @app.errorhandler(MemberNotFound)
    def handle_not_found(e):
        return jsonify({'error': 'Member not found'}), 404

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({'error': e.description}), e.code
        db.session.rollback()
        logger.exception("unhandled error on %s %s", request.method, request.path)
        message = FAILURE_MESSAGES.get(request.endpoint, 'Internal server error')
        return jsonify({'error': message}), 500


def register_routes(app: Flask):
    @app.route('/')
    def home():
        return jsonify({'ok': True, 'service': 'gym-members'})

    @app.route('/api/plans', methods=['GET'])
    def list_plans():
        return jsonify([{'label': p, 'months': plan_months(p)} for p in PLANS])

    @app.route('/api/members', methods=['GET'])
    def list_members():
        members = repository.list_members(
            search=request.args.get('search') or request.args.get('q'),
            status=request.args.get('status'),
        )
        now = utcnow()
        return jsonify([m.to_dict(now) for m in members])

    @app.route('/api/members/stats', methods=['GET'])
    def member_stats():
        return jsonify(repository.member_stats())

    @app.route('/api/members', methods=['POST'])
    def create_member():
        fields = repository.normalize_fields(_json_body(), creating=True)
        # Any client supplied nextPayment is ignored; the server value is authoritative
        next_payment = compute_next_payment_date(fields['plan'], utcnow())
        member = repository.create_member(fields, next_payment)
        return jsonify(member.to_dict()), 201

    @app.route('/api/members/<member_id>', methods=['GET'])
    def get_member(member_id):
        return jsonify(repository.get_member(member_id).to_dict())

    @app.route('/api/members/<member_id>', methods=['PATCH', 'PUT'])
    def update_member(member_id):
        data = _json_body()
        member = repository.get_member(member_id)
        fields = repository.normalize_fields(data)
        plan = fields.get('plan', member.plan)
        member = repository.update_member(member_id, fields, compute_next_payment_date(plan, utcnow()))
        return jsonify(member.to_dict())

    @app.route('/api/members', methods=['DELETE'])
    def delete_member_missing_id():
        return jsonify({'error': 'Missing id'}), 400

    @app.route('/api/members/<member_id>', methods=['DELETE'])
    def delete_member(member_id):
        member_id = (member_id or '').strip()
        if not member_id:
            return jsonify({'error': 'Missing id'}), 400
        repository.delete_member(member_id)
        return jsonify({'ok': True})

    @app.route('/api/upload', methods=['POST'])
    def upload_avatar():
        f = request.files.get('file')
        if f is None or not f.filename:
            return jsonify({'error': 'No file provided'}), 400
        if not (f.mimetype or '').startswith('image/'):
            return jsonify({'error': 'File must be an image'}), 400
        data = f.read()
        limit = app.config.get('MAX_AVATAR_BYTES', 5 * 1024 * 1024)
        if len(data) > limit:
            return jsonify({'error': f'File size must be less than {limit // (1024 * 1024)}MB'}), 400
        try:
            url = _storage().upload(data, f.filename, f.mimetype)
        except StorageError:
            logger.exception("avatar upload failed")
            return jsonify({'error': 'Upload failed'}), 500
        return jsonify({'url': url})


__all__ = ['create_app', 'db', 'Member']

if __name__ == '__main__':
    app = create_app()
    debug_mode = os.getenv('FLASK_DEBUG', '0') == '1'
    app.run(debug=debug_mode, host='0.0.0.0', port=int(os.getenv('PORT', '5000')))
