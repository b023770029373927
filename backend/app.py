from flask import Flask, request, jsonify, Response, send_from_directory, stream_with_context
from flask_cors import CORS
import os
import json
import traceback
import logging

# Setup Logging
log_file = os.environ.get('LOG_FILE', 'server.log')
logging.basicConfig(
    filename=log_file,
    level=logging.DEBUG,
    format='%(asctime)s %(levelname)s: %(message)s'
)
logging.info("Server starting up...")

from backend.validator.aggregate import ResultAggregator, clipboard_text
from backend.validator.config import Config
from backend.validator.errors import InputError, InvalidRequestError
from backend.validator.extract import SheetFetcher, get_text_hash, load_records
from backend.validator.load import ReportLoader
from backend.validator.models import RunStatus
from backend.validator.pipeline import ValidationPipeline


app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": os.environ.get('CORS_ORIGINS', 'http://localhost:5173').split(',')}})

# Folders
OUTPUT_FOLDER = os.path.join(os.getcwd(), Config.OUTPUT_FOLDER)
os.makedirs(OUTPUT_FOLDER, exist_ok=True)

API_BASE_URL = os.environ.get('API_BASE_URL', 'http://localhost:5000').rstrip('/')

# One pipeline per request; runs never share state
build_pipeline = ValidationPipeline.from_config
sheet_fetcher = SheetFetcher()


def _payload():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequestError("Request body must be a JSON object.")
    return data


def _read_source(data):
    """Return the raw CSV text from either an inline payload or a published sheet URL."""
    csv_text = data.get('csv_text')
    if csv_text:
        if not isinstance(csv_text, str):
            raise InvalidRequestError("csv_text must be a string.")
        return csv_text
    return sheet_fetcher.fetch(data.get('sheet_url', ''))


@app.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok", "model": Config.GEMINI_MODEL, "api_key_configured": bool(Config.GEMINI_API_KEY)})


@app.route('/sheet/fetch', methods=['POST'])
def fetch_sheet():
    try:
        records = load_records(_read_source(_payload()))
    except InputError as e:
        logging.warning(f"Sheet rejected: {e}")
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "rows": len(records),
        "columns": list(records[0].raw.keys()),
        "message": f"Successfully fetched {len(records)} rows. Ready to process."
    })


@app.route('/validate', methods=['POST'])
def validate_sheet():
    # ─── Input errors block processing entirely ───
    try:
        data = _payload()
        target_format = data.get('target_format', 'xlsx')
        if not isinstance(target_format, str) or target_format not in Config.ALLOWED_FORMATS:
            raise InvalidRequestError(f"Unsupported report format: {target_format}")
        source_text = _read_source(data)
        records = load_records(source_text)
    except InputError as e:
        logging.warning(f"Validation blocked: {e}")
        return jsonify({"error": str(e)}), 400

    pipeline = build_pipeline()

    def generate():
        yield json.dumps({"p": 0, "status": f"Processing {len(records)} Records"}) + "\n"

        try:
            for event in pipeline.start(records):
                if event.kind == "progress":
                    yield json.dumps({"p": event.percentage, "status": event.message}) + "\n"
                elif event.kind == "outcome":
                    yield json.dumps({
                        "p": event.percentage,
                        "row": event.current,
                        "outcome": event.outcomes[-1].to_dict()
                    }) + "\n"

            state = pipeline.state
            aggregator = ResultAggregator()
            aggregator.assess(state.outcomes)

            report_path = ReportLoader(OUTPUT_FOLDER).save(state.outcomes, target_format)
            filename = os.path.basename(report_path)

            yield json.dumps({
                "status": "aborted" if state.status is RunStatus.ABORTED else "success",
                "source_hash": get_text_hash(source_text),
                "critical_error": state.critical_error,
                "total": state.total,
                "processed": len(state.outcomes),
                "results": [o.to_dict() for o in state.outcomes],
                "tally": aggregator.get_stats(),
                "chart": aggregator.get_chart_data(),
                "clipboard": clipboard_text(state.outcomes),
                "download_url": f"{API_BASE_URL}/download/{filename}"
            }) + "\n"

        except Exception as e:
            logging.error(f"Streaming Error: {traceback.format_exc()}")
            yield json.dumps({"status": "failed", "error": str(e)}) + "\n"

    return Response(stream_with_context(generate()), mimetype='application/x-ndjson')


@app.route('/download/<path:filename>', methods=['GET'])
def download_file(filename):
    return send_from_directory(OUTPUT_FOLDER, filename, as_attachment=True)


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG', 'False') == 'True')
