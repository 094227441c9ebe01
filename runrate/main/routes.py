# ==============================================================================
# runrate/main/routes.py
# ------------------------------------------------------------------------------
# Defines all routes for the main application blueprint.
# This file acts as the controller for the dashboard's JSON API: it takes a
# snapshot of the store, runs the engine and shapes the result.
# ==============================================================================

import os
import json
from datetime import date
from flask import request, current_app, jsonify
from werkzeug.utils import secure_filename
from sqlalchemy.exc import IntegrityError

from runrate import db
from runrate import store
from runrate.main import bp
from runrate.models import AppSetting, Target, BranchTarget, Projection, Demand
from runrate.calculator.catalog import MetricCatalog, UnknownMetricError
from runrate.calculator.hierarchy import resolve_scope
from runrate.calculator.projections import summarize_plan_entries
from runrate.calculator.schema import REQUIRED_COLUMNS
from runrate.calculator.validator import validate_achievement_file
from runrate.calculator.engine import (calculate_run_rate_for_staff, calculate_overall_run_rate,
                                       product_breakdown, CalculationConfig)
from runrate.main.forms import (AppSettingForm, StaffForm, BranchForm, ProductMetricForm, TargetForm,
                                BranchTargetForm, DesignationTargetForm, DailyAchievementForm, ProjectionForm,
                                DemandForm, PlanValueForm, split_list)
from runrate.main.utils import (parse_month_arg, parse_as_of_arg, parse_date_arg, run_rate_payload,
                               scope_payload, plan_report_payload)

# --- Helper Functions ---

def allowed_file(filename):
    """Checks if the file extension is allowed based on the app config."""
    return '.' in filename and \
           os.path.splitext(filename)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']

def json_error(message, status=400, **extra):
    payload = {'status': 'error', 'message': message}
    payload.update(extra)
    return jsonify(payload), status

def form_error(form):
    return json_error('Invalid input.', 400, errors=form.errors)

def store_error(e):
    """Rolls back and maps a rejected write to its HTTP status."""
    db.session.rollback()
    status = 409 if isinstance(e, (store.DuplicateTargetError, store.DuplicateEntryError)) else 400
    current_app.logger.warning(f"Rejected write: {e}")
    return json_error(str(e), status)

def _period_args():
    return parse_month_arg(request.args.get('month')), parse_as_of_arg(request.args.get('as_of'))

# --- Achievement Upload and Submission ---

@bp.route('/', methods=['GET', 'POST'])
def index():
    """Accepts an achievement report upload (.xlsx or .csv) and upserts its rows."""
    if request.method == 'GET':
        return jsonify({
            'status': 'ok',
            'allowed_extensions': sorted(current_app.config['ALLOWED_EXTENSIONS']),
            'required_columns': REQUIRED_COLUMNS,
        })

    if 'file' not in request.files:
        return json_error('No file part in the request.')
    file = request.files['file']
    if file.filename == '':
        return json_error('No file selected.')
    if not allowed_file(file.filename):
        return json_error('File type not allowed. Please upload a .xlsx or .csv file.')

    filename = secure_filename(file.filename)
    filepath = os.path.join(current_app.config['UPLOAD_FOLDER'], filename)
    os.makedirs(current_app.config['UPLOAD_FOLDER'], exist_ok=True)
    file.save(filepath)

    records, errors = validate_achievement_file(filepath, store.load_catalog())
    if errors:
        return json_error('The report failed validation.', 400, errors=errors)

    try:
        added, updated, skipped = store.bulk_import_achievements(records)
    except (store.StoreError, UnknownMetricError) as e:
        return store_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Achievement import failed: {e}", exc_info=True)
        return json_error(f'An unexpected error occurred during import: {e}', 500)

    current_app.logger.info(f"Imported '{filename}': {added} added, {updated} updated, {skipped} skipped")
    return jsonify({'status': 'ok', 'filename': filename, 'added': added, 'updated': updated, 'skipped': skipped})


@bp.route('/achievements', methods=['POST'])
def submit_achievement():
    """Saves a staff member's daily figures. Totals are recomputed server-side."""
    form = DailyAchievementForm()
    if not form.validate_on_submit():
        return form_error(form)
    raw = form.metric_values.data
    try:
        values = raw if isinstance(raw, dict) else json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        values = None
    if not isinstance(values, dict):
        return json_error("'metric_values' must be a JSON object.")

    try:
        record, created = store.upsert_achievement(
            form.date.data, form.staff_name.data, form.branch_name.data or None, values
        )
    except (store.StoreError, UnknownMetricError) as e:
        return store_error(e)

    return jsonify({'status': 'ok', 'created': created, 'record': record.to_row()}), 201 if created else 200

# --- Dashboard Routes ---

@bp.route('/runrate/overall')
def overall_run_rate():
    """The organisation-wide run rate, measured against branch targets."""
    try:
        month, as_of = _period_args()
    except ValueError as e:
        return json_error(str(e))
    snapshot = store.take_snapshot(month)
    result = calculate_overall_run_rate(snapshot, month, snapshot.get_achievement_rows(), today=as_of)
    return jsonify(run_rate_payload(result, month, as_of))


@bp.route('/runrate/<employee_code>')
def staff_run_rate(employee_code):
    """The run rate for everything a staff member is responsible for."""
    try:
        month, as_of = _period_args()
    except ValueError as e:
        return json_error(str(e))
    snapshot = store.take_snapshot(month)
    staff = snapshot.find_staff(employee_code)
    if staff is None:
        return json_error(f'No staff member with code {employee_code}.', 404)

    config = CalculationConfig()
    result, scope = calculate_run_rate_for_staff(
        snapshot, staff, month, snapshot.get_achievement_rows(),
        today=as_of, policy=config.TARGET_RECONCILIATION_POLICY
    )
    return jsonify(run_rate_payload(result, month, as_of, scope=scope, staff=staff))


@bp.route('/scope/<employee_code>')
def staff_scope(employee_code):
    snapshot = store.take_snapshot()
    staff = snapshot.find_staff(employee_code)
    if staff is None:
        return json_error(f'No staff member with code {employee_code}.', 404)
    scope = resolve_scope(staff, snapshot.get_all_staff(), snapshot.get_branches())
    return jsonify(scope_payload(scope))


@bp.route('/products/<employee_code>')
def staff_products(employee_code):
    """Product-wise target vs. achievement for a staff member's scope."""
    try:
        month, as_of = _period_args()
    except ValueError as e:
        return json_error(str(e))
    snapshot = store.take_snapshot(month)
    staff = snapshot.find_staff(employee_code)
    if staff is None:
        return json_error(f'No staff member with code {employee_code}.', 404)
    scope = resolve_scope(staff, snapshot.get_all_staff(), snapshot.get_branches())
    rows = product_breakdown(snapshot, scope, month, snapshot.get_achievement_rows(), as_of=as_of)
    return jsonify({'month': month, 'as_of': as_of.isoformat(), 'products': rows})

# --- Admin: Staff and Branches ---

@bp.route('/admin/staff/add', methods=['POST'])
def add_staff():
    form = StaffForm()
    if not form.validate_on_submit():
        return form_error(form)
    try:
        staff = store.add_staff(form.to_data())
    except store.StoreError as e:
        return store_error(e)
    except IntegrityError:
        db.session.rollback()
        return json_error('A staff member with this employee code already exists.', 409)
    return jsonify({'status': 'ok', 'staff': staff.to_dict()}), 201


@bp.route('/admin/staff/edit/<employee_code>', methods=['POST'])
def edit_staff(employee_code):
    form = StaffForm()
    form.employee_code.data = employee_code
    if not form.validate_on_submit():
        return form_error(form)
    try:
        staff = store.update_staff(employee_code, form.to_data())
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok', 'staff': staff.to_dict()})


@bp.route('/admin/staff/delete/<employee_code>', methods=['POST'])
def delete_staff(employee_code):
    try:
        store.remove_staff(employee_code)
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok'})


@bp.route('/admin/branch/add', methods=['POST'])
def add_branch():
    form = BranchForm()
    if not form.validate_on_submit():
        return form_error(form)
    try:
        branch = store.add_branch(form.data)
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok', 'branch_name': branch.branch_name}), 201


@bp.route('/admin/branch/delete/<branch_name>', methods=['POST'])
def delete_branch(branch_name):
    try:
        store.remove_branch(branch_name)
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok'})

# --- Admin: Metric Catalog ---

@bp.route('/admin/metric/add', methods=['POST'])
def add_metric():
    form = ProductMetricForm()
    if not form.validate_on_submit():
        return form_error(form)
    try:
        metric = store.add_metric(form.name.data, form.category.data, form.kind.data,
                                  form.unit_of_measure.data or '', form.contributes_to_overall_goals.data)
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok', 'name': metric.name}), 201


@bp.route('/admin/metric/delete/<path:name>', methods=['POST'])
def delete_metric(name):
    try:
        store.remove_metric(name)
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok'})


@bp.route('/admin/designation/<designation>', methods=['POST'])
def edit_designation_metrics(designation):
    form = DesignationTargetForm()
    if not form.validate_on_submit():
        return form_error(form)
    try:
        record = store.set_designation_metrics(designation, split_list(form.metrics.data))
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok', 'designation': record.designation, 'metrics': record.metrics})

# --- Admin: Targets ---

@bp.route('/admin/target/add', methods=['POST'])
def add_target():
    form = TargetForm()
    if not form.validate_on_submit():
        return form_error(form)
    try:
        target = store.save_target(form.employee_code.data, form.metric.data, form.target.data,
                                   form.period_type.data, form.period.data, due_date=form.due_date.data)
    except store.StoreError as e:
        return store_error(e)
    except IntegrityError:
        db.session.rollback()
        return json_error('This target already exists.', 409)
    return jsonify({'status': 'ok', 'target': target.to_dict()}), 201


@bp.route('/admin/target/delete/<int:target_id>', methods=['POST'])
def delete_target(target_id):
    db.get_or_404(Target, target_id)
    store.delete_target(target_id)
    return jsonify({'status': 'ok'})


@bp.route('/admin/branch-target/add', methods=['POST'])
def add_branch_target():
    form = BranchTargetForm()
    if not form.validate_on_submit():
        return form_error(form)
    try:
        target = store.save_branch_target(form.branch_name.data, form.metric.data, form.target.data,
                                          form.month.data, due_date=form.due_date.data)
    except store.StoreError as e:
        return store_error(e)
    except IntegrityError:
        db.session.rollback()
        return json_error('This branch target already exists.', 409)
    return jsonify({'status': 'ok', 'target': target.to_dict()}), 201


@bp.route('/admin/branch-target/delete/<int:target_id>', methods=['POST'])
def delete_branch_target(target_id):
    db.get_or_404(BranchTarget, target_id)
    store.delete_branch_target(target_id)
    return jsonify({'status': 'ok'})

# --- Admin: Settings ---

@bp.route('/admin/settings', methods=['GET'])
def admin_settings():
    settings = AppSetting.query.order_by(AppSetting.key).all()
    return jsonify([
        {'key': s.key, 'value': s.value, 'value_type': s.value_type, 'description': s.description}
        for s in settings
    ])


@bp.route('/admin/setting/edit/<key>', methods=['POST'])
def edit_setting(key):
    setting = AppSetting.query.filter_by(key=key).first_or_404()
    form = AppSettingForm()
    if not form.validate_on_submit():
        return form_error(form)
    new_value = form.value.data.strip()
    if setting.value_type == 'json':
        try:
            parsed_json = json.loads(new_value)
            new_value = json.dumps(parsed_json, ensure_ascii=False)
        except json.JSONDecodeError:
            return json_error(f"The value for '{setting.key}' is not valid JSON.")
    setting.value = new_value
    db.session.commit()
    CalculationConfig._instance = None
    current_app.logger.info(f"Setting '{setting.key}' changed to '{new_value}'; config cache cleared.")
    return jsonify({'status': 'ok', 'key': setting.key, 'value': setting.value})

# --- Projections and Demands ---

def _visible_codes(snapshot, staff):
    """Employee codes whose entries a staff member may see. None means everyone."""
    scope = resolve_scope(staff, snapshot.get_all_staff(), snapshot.get_branches())
    return None if scope.is_global else scope.employee_codes


def _plan_report(snapshot, records):
    summary = summarize_plan_entries([r.to_domain() for r in records],
                                     MetricCatalog(snapshot.get_product_metrics()))
    names = {s.employee_code: s.employee_name for s in snapshot.get_all_staff()}
    return jsonify(plan_report_payload(records, summary, names))


@bp.route('/projections', methods=['POST'])
def submit_projection():
    form = ProjectionForm()
    if not form.validate_on_submit():
        return form_error(form)
    try:
        record = store.save_projection(form.employee_code.data, form.date.data,
                                       form.metric.data, form.value.data)
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok', 'projection': record.to_dict()}), 201


@bp.route('/projections/edit/<int:entry_id>', methods=['POST'])
def edit_projection(entry_id):
    db.get_or_404(Projection, entry_id)
    form = PlanValueForm()
    if not form.validate_on_submit():
        return form_error(form)
    try:
        record = store.update_projection(entry_id, form.value.data)
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok', 'projection': record.to_dict()})


@bp.route('/projections/delete/<int:entry_id>', methods=['POST'])
def delete_projection(entry_id):
    db.get_or_404(Projection, entry_id)
    store.delete_projection(entry_id)
    return jsonify({'status': 'ok'})


@bp.route('/projections/<employee_code>')
def projection_report(employee_code):
    """Projections of everyone in a staff member's scope, optionally between ?start= and ?end=."""
    try:
        start = parse_date_arg(request.args.get('start'), 'start date')
        end = parse_date_arg(request.args.get('end'), 'end date')
    except ValueError as e:
        return json_error(str(e))
    snapshot = store.take_snapshot()
    staff = snapshot.find_staff(employee_code)
    if staff is None:
        return json_error(f'No staff member with code {employee_code}.', 404)
    records = store.projections_for(_visible_codes(snapshot, staff), start, end)
    return _plan_report(snapshot, records)


@bp.route('/demands', methods=['POST'])
def submit_demand():
    form = DemandForm()
    if not form.validate_on_submit():
        return form_error(form)
    try:
        record = store.save_demand(form.employee_code.data, form.date.data, form.metric.data,
                                   form.value.data, source=form.source.data)
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok', 'demand': record.to_dict()}), 201


@bp.route('/demands/edit/<int:entry_id>', methods=['POST'])
def edit_demand(entry_id):
    db.get_or_404(Demand, entry_id)
    form = PlanValueForm()
    if not form.validate_on_submit():
        return form_error(form)
    try:
        record = store.update_demand(entry_id, form.value.data, source=form.source.data)
    except store.StoreError as e:
        return store_error(e)
    return jsonify({'status': 'ok', 'demand': record.to_dict()})


@bp.route('/demands/delete/<int:entry_id>', methods=['POST'])
def delete_demand(entry_id):
    db.get_or_404(Demand, entry_id)
    store.delete_demand(entry_id)
    return jsonify({'status': 'ok'})


@bp.route('/demands/<employee_code>')
def todays_demands(employee_code):
    """A staff member's demands for ?date= (today by default)."""
    try:
        day = parse_date_arg(request.args.get('date')) or date.today()
    except ValueError as e:
        return json_error(str(e))
    snapshot = store.take_snapshot()
    if snapshot.find_staff(employee_code) is None:
        return json_error(f'No staff member with code {employee_code}.', 404)
    records = store.demands_for([employee_code], day, day)
    return _plan_report(snapshot, records)
