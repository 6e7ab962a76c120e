"""
Flask Web Application for the Career Compass questionnaire

Thin JSON API over FlowManager. The rendering layer calls these routes on
user interaction and reads back the view and compass after every mutation.
One in-memory session per process; nothing is persisted.
"""

from flask import Flask, jsonify, request
import logging
import os

from compass.commands import (
    AcceptRecommendation,
    ChoosePath,
    FinalizePlan,
    GoBack,
    NextStep,
    SelectOption,
    SelectSummaryTab,
    StartSession,
    SubmitProfile,
    ToggleExperiment,
    UpdatePlan,
)
from compass.core.config_loader import load_config
from compass.core.flow_manager import FlowManager
from compass.results import IllegalCommand

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

CONFIG_PATH = os.environ.get("COMPASS_CONFIG", "data/career_flow.json")


def create_app(config_path=CONFIG_PATH):
    """
    Build the Flask app.

    Loads the configuration eagerly: a broken config fails here, before the
    first request, with ConfigIntegrityError.
    """
    app = Flask(__name__)
    flow = FlowManager(load_config(config_path))

    # Current session for this process
    session = {'result': None}

    def _respond(result):
        if isinstance(result, IllegalCommand):
            return jsonify({
                'success': False,
                'error': result.reason,
                'command': result.command_type
            }), 409

        session['result'] = result
        return jsonify({
            'success': True,
            'phase': result.phase,
            'view': result.view,
            'compass': result.compass,
            'notice': result.notice
        })

    def _require_session():
        if session['result'] is None:
            return jsonify({
                'success': False,
                'error': 'No active session'
            }), 400
        return None

    def _state():
        return session['result'].state

    @app.route('/api/start', methods=['POST'])
    def start_session():
        """Start a new session and move past the intro screen"""
        result = flow.handle(StartSession())
        return _respond(flow.handle(NextStep(state=result.state)))

    @app.route('/api/state', methods=['GET'])
    def get_state():
        """Current view and compass"""
        return _require_session() or _respond(session['result'])

    @app.route('/api/profile', methods=['POST'])
    def submit_profile():
        data = request.get_json(silent=True) or {}
        return _require_session() or _respond(
            flow.handle(SubmitProfile(state=_state(), values=data.get('values', {})))
        )

    @app.route('/api/select', methods=['POST'])
    def select_option():
        """Toggle an option on the current question"""
        data = request.get_json(silent=True) or {}
        option_id = data.get('optionId', '')
        return _require_session() or _respond(
            flow.handle(SelectOption(state=_state(), option_id=option_id))
        )

    @app.route('/api/next', methods=['POST'])
    def next_step():
        return _require_session() or _respond(flow.handle(NextStep(state=_state())))

    @app.route('/api/back', methods=['POST'])
    def go_back():
        return _require_session() or _respond(flow.handle(GoBack(state=_state())))

    @app.route('/api/path', methods=['POST'])
    def choose_path():
        """Accept the recommendation (no pathId) or choose a different path"""
        data = request.get_json(silent=True) or {}
        error = _require_session()
        if error:
            return error
        if not data.get('pathId'):
            return _respond(flow.handle(AcceptRecommendation(state=_state())))
        return _respond(flow.handle(ChoosePath(
            state=_state(),
            path_id=data['pathId'],
            secondary_path=data.get('secondaryPath')
        )))

    @app.route('/api/experiments/toggle', methods=['POST'])
    def toggle_experiment():
        data = request.get_json(silent=True) or {}
        return _require_session() or _respond(
            flow.handle(ToggleExperiment(state=_state(), experiment_id=data.get('experimentId', '')))
        )

    @app.route('/api/plan', methods=['POST'])
    def update_plan():
        data = request.get_json(silent=True) or {}
        return _require_session() or _respond(flow.handle(UpdatePlan(
            state=_state(),
            focus_statement=data.get('focusStatement'),
            open_question=data.get('openQuestion')
        )))

    @app.route('/api/finalize', methods=['POST'])
    def finalize_plan():
        """Generate both summaries"""
        return _require_session() or _respond(flow.handle(FinalizePlan(state=_state())))

    @app.route('/api/summary/<tab>', methods=['POST'])
    def summary_tab(tab):
        return _require_session() or _respond(flow.handle(SelectSummaryTab(state=_state(), tab=tab)))

    return app


if __name__ == '__main__':
    app = create_app()

    print("\n" + "="*60)
    print("CAREER COMPASS - JSON API")
    print("="*60)
    print("\nServer starting on http://localhost:5000")
    print("\nPress Ctrl+C to stop the server")
    print("="*60 + "\n")

    app.run(debug=True, host='0.0.0.0', port=5000)
