"""HTTP endpoint re-serving host entities in the remote page shape."""

from flask import Flask, request, jsonify
from flask_cors import CORS
import logging

from .config import Config, import_entity
from .entity import Entity
from .resolver import CacheResolver

logger = logging.getLogger(__name__)


def _host_models(config):
    """
    Map every name a caller may use for a host entity to its type.

    Body model names are the configured reference, the class name or the
    qualified name. Path segments are the entity's relative endpoint, which
    is what a RemoteFetcher appends to the API path.
    """
    models = {}
    endpoints = {}
    for reference in config.HOST_MODELS:
        entity_type = import_entity(reference)
        entity = Entity.from_type(entity_type, config)
        models[reference] = entity_type
        models[entity.name] = entity_type
        models[entity.key] = entity_type
        if not entity.endpoint.startswith(('http://', 'https://')):
            endpoints[entity.endpoint.strip('/')] = entity_type
    return models, endpoints


def create_app(config=Config, resolver=None) -> Flask:
    """
    Build the Flask app exposing host entities.

    Args:
        config: Configuration class
        resolver: CacheResolver binding host entities (created if omitted)
    """
    app = Flask(__name__)
    CORS(app)

    resolver = resolver or CacheResolver(config=config)
    host_models, host_endpoints = _host_models(config)
    api_path = '/' + config.API_PATH.strip('/')

    def serve_model(model=None):
        """Return one page of a host entity for an authorized caller."""
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = request.form.to_dict()
        # A body model wins over the path segment, which may be an endpoint
        body_model = payload.get('model')
        api_key = payload.get('api_key')

        if not body_model and not model:
            return jsonify({'error': 'The model field is required.'}), 422
        if not api_key:
            return jsonify({'error': 'The api key field is required.'}), 422
        if api_key != config.API_KEY:
            return jsonify({'error': 'Invalid api key'}), 403

        if body_model:
            model = body_model
            entity_type = host_models.get(model)
        else:
            entity_type = host_models.get(model) or host_endpoints.get(model.strip('/'))
        if entity_type is None:
            return jsonify({'error': f'Unknown model {model}'}), 404

        try:
            page = int(request.args.get('page', payload.get('page', 1)))
            per_page = int(request.args.get('per_page', payload.get('per_page', 15)))
        except (TypeError, ValueError):
            return jsonify({'error': 'page and per_page must be integers'}), 422

        # Resolution failures propagate to Flask's error handling
        store = resolver.resolve(entity_type)
        logger.debug(f"Serving {model} page {page}")
        return jsonify(store.paginate(page, per_page))

    app.add_url_rule(api_path, 'remote_models_endpoint', serve_model, methods=['POST'])
    app.add_url_rule(f'{api_path}/<path:model>', 'remote_models_model_endpoint', serve_model, methods=['POST'])

    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({'status': 'healthy', 'bound_models': resolver.bound()})

    return app


if __name__ == '__main__':
    create_app().run(debug=Config.DEBUG, port=5000)
