from flask import Flask, request, jsonify, Response, stream_with_context
from flask_cors import CORS
import os
import json
import logging
import traceback

from backend.ingest.config import Config

# Setup Logging
logging.basicConfig(
    filename=Config.LOG_FILE,
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s: %(message)s'
)
logging.info("Server starting up...")

from backend.ingest.categorize import CategoryMapper
from backend.ingest.detect import validate_filename
from backend.ingest.models import Rule
from backend.ingest.pipeline import IngestPipeline
from backend.ingest.rules import validate_rule_conditions, try_rule_on_samples
from backend.ingest.transform import normalize_rate
from backend.supabase_client import TransactionStore


app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": Config.CORS_ORIGINS}})

# Initialize Pipeline & Storage
category_mapper = CategoryMapper()
ingest_pipeline = IngestPipeline(category_mapper)
store = TransactionStore()

PREVIEW_ROWS = 20


def _frame(payload) -> str:
    return json.dumps(payload, default=str) + "\n"


def _parse_rules(raw):
    """Rules supplied with a request: a JSON list of rule objects."""
    records = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise ValueError("rules must be a JSON list of objects")
    return [Rule.from_record(r) for r in records]


def _preview(tx):
    return {k: v for k, v in tx.items() if k != "raw"}


@app.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok", "storage_configured": store.configured})


@app.route('/ingest/document', methods=['POST'])
def ingest_document():
    if 'file' not in request.files:
        return jsonify({"status": "failed", "error": "No file part"}), 400

    file = request.files['file']
    valid, error = validate_filename(file.filename)
    if not valid:
        return jsonify({"status": "failed", "error": error}), 400

    user_id = request.form.get('user_id', '')
    file_id = request.form.get('file_id')

    # ─── 1. Rules: explicit in the request, else the user's stored rules ───
    try:
        if request.form.get('rules'):
            rules = _parse_rules(request.form['rules'])
        else:
            rules = store.get_active_rules(user_id)
    except ValueError as e:
        return jsonify({"status": "failed", "error": f"Invalid rules: {e}"}), 400

    # ─── 2. Size Validation (Must happen now while file is open) ───
    file.seek(0, os.SEEK_END)
    file_size_mb = file.tell() / (1024 * 1024)
    file.seek(0)

    if file_size_mb > Config.MAX_UPLOAD_MB:
        return jsonify({
            "status": "failed",
            "error": f"File too large ({file_size_mb:.1f}MB). Max is {Config.MAX_UPLOAD_MB}MB."
        }), 400

    filename = file.filename
    mime_type = file.mimetype
    content = file.read()

    def generate():
        # Only plain values from here on; the request is gone once streaming starts
        yield _frame({"p": 2, "status": "Initializing..."})

        final_result = None
        for p, msg, res in ingest_pipeline.process(content, filename, mime_type, user_id=user_id, rules=rules):
            if res:
                final_result = res
            else:
                yield _frame({"p": p, "status": msg})

        if not final_result or not final_result["success"]:
            error_msg = final_result.get("error", "Unknown ingestion error") if final_result else "Pipeline failed"
            yield _frame({"status": "failed", "error": error_msg})
            return

        try:
            yield _frame({"p": 97, "status": "Saving transactions..."})
            transactions = final_result["transactions"]
            stored = store.get_existing_hashes(user_id, [tx["dedupe_hash"] for tx in transactions])
            new_transactions = [tx for tx in transactions if tx["dedupe_hash"] not in stored]
            storage = store.insert_transactions(user_id, new_transactions, file_id=file_id)

            meta = final_result["meta"]
            yield _frame({
                "status": "success",
                "stats": final_result["stats"],
                "errors": final_result["errors"],
                "already_imported": len(stored),
                "inserted": storage["inserted"],
                "skipped": storage["skipped"],
                "persisted": storage["persisted"],
                "file": {k: meta[k] for k in ("filename", "kind", "ext", "detected_by")},
                "mapping": meta["mapping"],
                "mapping_warnings": meta["mapping_warnings"],
                "categories": meta["categories"],
                "document_hash": meta["parser"].get("document_hash"),
                "processing_time_ms": meta["duration_ms"],
                "preview": [_preview(tx) for tx in transactions[:PREVIEW_ROWS]],
            })
        except Exception as e:
            logging.error(f"Streaming Error: {traceback.format_exc()}")
            yield _frame({"status": "failed", "error": str(e)})

    return Response(stream_with_context(generate()), mimetype='application/x-ndjson')


@app.route('/rules/validate', methods=['POST'])
def validate_rules():
    data = request.get_json(silent=True) or {}
    errors = validate_rule_conditions(data.get('conditions') or "")
    return jsonify({"valid": not errors, "errors": errors})


@app.route('/rules/test', methods=['POST'])
def dry_run_rule():
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('rule'), dict):
        return jsonify({"error": "rule required"}), 400
    samples = data.get('samples') or []
    if isinstance(samples, str):
        samples = [samples]
    rule = Rule.from_record(data['rule'])
    return jsonify(try_rule_on_samples(rule, samples))


@app.route('/categorize/suggest', methods=['POST'])
def suggest_category():
    data = request.get_json(silent=True) or {}
    description = data.get('description')
    if not description:
        return jsonify({"error": "description required"}), 400
    merchant = data.get('merchant')
    gst_rate = normalize_rate(data.get('gst_rate'))

    try:
        rules = _parse_rules(data['rules']) if data.get('rules') else []
    except ValueError as e:
        return jsonify({"error": f"Invalid rules: {e}"}), 400

    return jsonify({
        "result": category_mapper.categorize(description, merchant, gst_rate, rules),
        "suggestions": category_mapper.suggest(description, merchant),
        "explanation": category_mapper.explain(description, merchant),
    })


if __name__ == '__main__':
    # Use environment port for Render/Railway
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG', 'False') == 'True')
