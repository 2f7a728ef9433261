from flask import Flask, request, jsonify
from flask_cors import CORS
from pydantic import ValidationError as RequestValidationError
from werkzeug.exceptions import HTTPException
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from backend.models import (
    AreaQuery, CommunityQuery, MicroclimateRequest, UploadResponse,
    RiskForecastResponse, MicroclimateResponse, HeatForecastResponse,
    CommunityTrendResponse, CategoryCountsResponse, ReadingKind, SubmissionsQuery,
    PestSubmission, MicroclimateSubmission, PestSubmissionsResponse, MicroclimateSubmissionsResponse
)
from backend.data_manager import DataManager
from classification import advice_for_risk_level
from community import aggregate_community_trend, community_category_counts
from config import get_data_dir
from errors import DecodeError, StoreError, ValidationError
from forecasting import forecast_for_area, heat_forecast_for_area
from processing import process_upload, submit_microclimate
from store import ReadingStore

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 16 * 1024 * 1024
MAX_SUBMISSIONS = 100


def configure_logging(log_dir: Optional[str] = None) -> str:
    """Log to <data dir>/logs/server.log and the console"""
    log_dir = log_dir or os.path.join(str(get_data_dir()), 'logs')
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, 'server.log')
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()  # Also log to console
        ]
    )
    return log_file


def _dump(model) -> dict:
    return model.model_dump(mode='json', exclude_none=True)


def create_app(store: ReadingStore) -> Flask:
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_BYTES
    CORS(app)

    @app.errorhandler(RequestValidationError)
    def handle_bad_request(e):
        return jsonify({'error': 'invalid_request', 'message': str(e)}), 400

    @app.errorhandler(ValidationError)
    def handle_invalid_reading(e):
        return jsonify({'error': 'invalid_reading', 'message': str(e)}), 400

    @app.errorhandler(DecodeError)
    def handle_decode_error(e):
        logger.warning(f"Rejected upload: {e}")
        return jsonify({'error': 'analysis_failed', 'message': str(e)}), 422

    @app.errorhandler(StoreError)
    def handle_store_error(e):
        logger.error(f"Store failure: {e}", exc_info=True)
        return jsonify({'error': 'store_unavailable', 'message': str(e)}), 503

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        logger.error(f"Unhandled error on {request.path}: {e}", exc_info=True)
        return jsonify({'error': 'internal_error', 'message': 'Unexpected server error'}), 500

    @app.route('/health', methods=['GET'])
    def health():
        """Health check endpoint"""
        return jsonify({'status': 'ok', 'message': 'Server is running'}), 200

    @app.route('/api/upload-pest-trap', methods=['POST'])
    def upload_pest_trap():
        """Analyse an uploaded trap photo and refresh the user's forecast"""
        query = AreaQuery(
            username=request.form.get('username', ''),
            area_id=request.form.get('area_id') or request.form.get('areaId', ''),
        )
        upload = request.files.get('image')
        if upload is None:
            return jsonify({'error': 'image is required'}), 400

        result = process_upload(store, query.username, query.area_id, upload.read(), upload.filename or "")

        return jsonify(_dump(UploadResponse(**result))), 200

    @app.route('/api/pest-forecast', methods=['GET'])
    def pest_forecast():
        query = AreaQuery(
            username=request.args.get('username', ''),
            area_id=request.args.get('area_id') or request.args.get('areaId', ''),
        )
        forecast = forecast_for_area(store, query.username, query.area_id)
        logger.info(f"Forecast for {query.username}/{query.area_id}: {forecast.risk_level} ({forecast.risk_score:.3f})")
        response = RiskForecastResponse(
            area_id=query.area_id,
            advice=advice_for_risk_level(forecast.risk_level),
            **forecast.to_dict(),
        )
        return jsonify(_dump(response)), 200

    @app.route('/api/submit-microclimate', methods=['POST'])
    def submit_microclimate_reading():
        body = MicroclimateRequest(**(request.get_json(silent=True) or {}))
        result = submit_microclimate(
            store,
            body.username,
            body.area_id,
            body.model_dump(include={'air_temperature', 'soil_temperature', 'soil_moisture', 'relative_humidity'}),
        )
        return jsonify(_dump(MicroclimateResponse(**result))), 200

    @app.route('/api/heat-stress-forecast', methods=['GET'])
    def heat_stress_forecast():
        query = AreaQuery(
            username=request.args.get('username', ''),
            area_id=request.args.get('area_id') or request.args.get('areaId', ''),
        )
        forecast = heat_forecast_for_area(store, query.username, query.area_id)
        response = HeatForecastResponse(area_id=query.area_id, **forecast.to_dict())
        return jsonify(_dump(response)), 200

    def submissions_query() -> SubmissionsQuery:
        return SubmissionsQuery(
            username=request.args.get('username', ''),
            area_id=request.args.get('area_id') or request.args.get('areaId') or None,
            limit=request.args.get('limit', 20),
        )

    @app.route('/api/submissions', methods=['GET'])
    def pest_submissions():
        """The user's own trap uploads, newest first"""
        query = submissions_query()
        rows = store.get_pest_readings(query.username, query.area_id, min(query.limit, MAX_SUBMISSIONS))
        submissions = [PestSubmission.model_validate(r, from_attributes=True) for r in rows]
        return jsonify(_dump(PestSubmissionsResponse(submissions=submissions, total=len(submissions)))), 200

    @app.route('/api/microclimate-submissions', methods=['GET'])
    def microclimate_submissions():
        """The user's own microclimate readings, newest first"""
        query = submissions_query()
        rows = store.get_microclimate_readings(query.username, query.area_id, min(query.limit, MAX_SUBMISSIONS))
        submissions = [MicroclimateSubmission.model_validate(r, from_attributes=True) for r in rows]
        return jsonify(_dump(MicroclimateSubmissionsResponse(submissions=submissions, total=len(submissions)))), 200

    def community_trend(kind: ReadingKind):
        query = CommunityQuery(**request.args.to_dict())
        if not query.area_id:
            return jsonify({'error': 'area_id is required'}), 400
        trend = aggregate_community_trend(store, query.area_id, kind.value, query.type.value)
        response = CommunityTrendResponse(
            area_id=query.area_id,
            kind=kind,
            type=query.type,
            trend=trend.to_dict(),
            generated_at=datetime.now(timezone.utc).isoformat(),
        )
        return jsonify(_dump(response)), 200

    def category_counts(kind: ReadingKind):
        query = CommunityQuery(**request.args.to_dict())
        counts = community_category_counts(store, query.area_id, kind.value, query.type.value)
        response = CategoryCountsResponse(kind=kind, **counts)
        return jsonify(_dump(response)), 200

    @app.route('/api/community-pest-trend', methods=['GET'])
    def community_pest_trend():
        return community_trend(ReadingKind.PEST)

    @app.route('/api/community-heat-trend', methods=['GET'])
    def community_heat_trend():
        return community_trend(ReadingKind.HEAT)

    @app.route('/api/community-pest-counts', methods=['GET'])
    def community_pest_counts():
        return category_counts(ReadingKind.PEST)

    @app.route('/api/community-heat-counts', methods=['GET'])
    def community_heat_counts():
        return category_counts(ReadingKind.HEAT)

    return app


if __name__ == '__main__':
    log_file = configure_logging()
    data_manager = DataManager()
    app = create_app(data_manager)
    logger.info("="*60)
    logger.info("Starting Pest Trap Forecaster server...")
    logger.info("Server will be available at http://localhost:5000")
    logger.info(f"Logs will be written to: {log_file}")
    logger.info("="*60)
    app.run(host='0.0.0.0', port=5000, debug=False)
