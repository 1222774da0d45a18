"""
Cloud Functions entry points for the learning functions.

``api`` serves the whole Flask app behind one function. The per-operation
functions are deployed under their own names so the emulator path
``/<project>/<region>/<operation>`` reaches the matching view.
"""
import functions_framework

import functions_service
from app import create_app
from functions_service import CORS_HEADERS

app = create_app()


def _forward(view, request):
    # Preflight never needs the app context
    if request.method == 'OPTIONS':
        return ('', 204, CORS_HEADERS)

    with app.request_context(request.environ):
        return app.make_response(view())


@functions_framework.http
def api(request):
    """
    Dispatch a Cloud Functions request through the Flask app.
    """
    # Handle CORS preflight requests
    if request.method == 'OPTIONS':
        return ('', 204, CORS_HEADERS)

    with app.request_context(request.environ):
        return app.full_dispatch_request()


@functions_framework.http
def resolveWebPageTitle(request):
    return _forward(functions_service.resolve_web_page_title, request)


@functions_framework.http
def generateSyllabus(request):
    return _forward(functions_service.generate_syllabus, request)


@functions_framework.http
def performInitialScoping(request):
    return _forward(functions_service.perform_initial_scoping, request)


@functions_framework.http
def generateSprintContent(request):
    return _forward(functions_service.generate_sprint_content, request)


# For local testing
if __name__ == "__main__":
    app.run(debug=True, host='0.0.0.0', port=5001)
