from flask import current_app, jsonify
from composer.domain.invariants.exceptions import InvariantViolation, PersistenceFailed


def _error_response(error):
    response = jsonify({
        "error": error.__class__.__name__,
        "kind": error.kind.value,
        "message": str(error)
    })
    response.status_code = error.status_code
    return response


def register_error_handlers(app):
    @app.errorhandler(InvariantViolation)
    def handle_invariant_violation(error):
        return _error_response(error)

    @app.errorhandler(PersistenceFailed)
    def handle_persistence_failed(error):
        if error.status_code >= 500:
            current_app.logger.error("Persistence failure: %s", error)
        return _error_response(error)
