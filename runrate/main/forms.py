# ==============================================================================
# runrate/main/forms.py
# ------------------------------------------------------------------------------
# Defines input forms using Flask-WTF for admin and staff submissions.
# Forms accept either posted form fields or a JSON body.
# ==============================================================================

from flask_wtf import FlaskForm
from wtforms import StringField, FloatField, SubmitField, SelectField, TextAreaField, BooleanField, DateField
from wtforms.validators import DataRequired, NumberRange, InputRequired, Optional, Regexp

from runrate.calculator.domain import DESIGNATIONS, PERIOD_TYPES
from runrate.calculator.catalog import METRIC_KINDS


def split_list(text):
    """'A, B ,C' -> ['A', 'B', 'C']"""
    return [part.strip() for part in (text or '').split(',') if part.strip()]


class AppSettingForm(FlaskForm):
    """Form for editing a single application setting."""
    value = TextAreaField('Value', validators=[DataRequired()], render_kw={'rows': 3})
    submit = SubmitField('Save changes')


class StaffForm(FlaskForm):
    """Form for adding or editing a staff member."""
    employee_code = StringField('Employee code', validators=[DataRequired(message="This field is required.")])
    employee_name = StringField('Employee name', validators=[DataRequired(message="This field is required.")])
    designation = SelectField(
        'Designation',
        choices=[(d, d) for d in DESIGNATIONS],
        validators=[InputRequired(message="Please select a designation.")]
    )
    branch_name = StringField('Branch', validators=[Optional()])
    district_name = StringField('District', validators=[Optional()])
    region = StringField('Region', validators=[Optional()])
    zone = StringField('Zone', validators=[Optional()])
    contact_number = StringField('Contact number', validators=[Optional()])
    reports_to = StringField('Reports to (employee code)', validators=[Optional()])
    managed_zones = StringField('Managed zones (comma separated)', validators=[Optional()])
    managed_branches = StringField('Managed branches (comma separated)', validators=[Optional()])
    submit = SubmitField('Save staff member')

    def to_data(self):
        data = {
            field: getattr(self, field).data
            for field in ('employee_code', 'employee_name', 'designation', 'branch_name', 'district_name',
                          'region', 'zone', 'contact_number', 'reports_to')
        }
        data['managed_zones'] = split_list(self.managed_zones.data)
        data['managed_branches'] = split_list(self.managed_branches.data)
        return data


class BranchForm(FlaskForm):
    branch_name = StringField('Branch name', validators=[DataRequired(message="This field is required.")])
    zone = StringField('Zone', validators=[Optional()])
    region = StringField('Region', validators=[Optional()])
    district_name = StringField('District', validators=[Optional()])
    submit = SubmitField('Save branch')


class ProductMetricForm(FlaskForm):
    """Form for adding a metric to the catalog."""
    name = StringField('Metric name', validators=[DataRequired(message="This field is required.")])
    category = StringField('Category', validators=[DataRequired(message="This field is required.")])
    kind = SelectField('Kind', choices=[(k, k) for k in METRIC_KINDS], validators=[InputRequired()])
    unit_of_measure = StringField('Unit', validators=[Optional()])
    contributes_to_overall_goals = BooleanField('Counts towards overall goals', default=True)
    submit = SubmitField('Save metric')


class TargetForm(FlaskForm):
    """Form for adding an individual KRA."""
    employee_code = StringField('Employee code', validators=[DataRequired(message="This field is required.")])
    metric = StringField('Metric', validators=[DataRequired(message="This field is required.")])
    target = FloatField('Target', validators=[InputRequired(message="This field is required."), NumberRange(min=0)])
    period_type = SelectField('Period type', choices=[(p, p) for p in PERIOD_TYPES], validators=[InputRequired()])
    period = StringField('Period (YYYY-MM, or YYYY for ytd)', validators=[DataRequired(message="This field is required.")])
    due_date = DateField('Due date', validators=[Optional()])
    submit = SubmitField('Save target')


class BranchTargetForm(FlaskForm):
    """Form for adding a monthly branch target."""
    branch_name = StringField('Branch', validators=[DataRequired(message="This field is required.")])
    metric = StringField('Metric', validators=[DataRequired(message="This field is required.")])
    target = FloatField('Target', validators=[InputRequired(message="This field is required."), NumberRange(min=0)])
    month = StringField('Month', validators=[DataRequired(), Regexp(r'^\d{4}-\d{2}$', message="Use YYYY-MM.")])
    due_date = DateField('Due date', validators=[Optional()])
    submit = SubmitField('Save target')


class DesignationTargetForm(FlaskForm):
    """Which metrics are assigned as KRAs to a designation."""
    metrics = StringField('Metrics (comma separated)', validators=[DataRequired()])
    submit = SubmitField('Save')


class DailyAchievementForm(FlaskForm):
    """
    A staff member's figures for one day. `metric_values` is a JSON object mapping
    metric names to numbers; totals are always recomputed on the server.
    """
    date = DateField('Date', validators=[InputRequired(message="This field is required.")])
    staff_name = StringField('Staff name', validators=[DataRequired(message="This field is required.")])
    branch_name = StringField('Branch', validators=[Optional()])
    metric_values = TextAreaField('Values (JSON)', validators=[DataRequired(message="This field is required.")])
    submit = SubmitField('Submit')


class ProjectionForm(FlaskForm):
    """A staff member's projection for one metric on one day."""
    employee_code = StringField('Employee code', validators=[DataRequired(message="This field is required.")])
    date = DateField('Date', validators=[InputRequired(message="This field is required.")])
    metric = StringField('Metric', validators=[DataRequired(message="This field is required.")])
    value = FloatField('Value', validators=[InputRequired(message="This field is required."), NumberRange(min=0)])
    submit = SubmitField('Save projection')


class DemandForm(ProjectionForm):
    source = StringField('Source', validators=[Optional()])
    submit = SubmitField('Save demand')


class PlanValueForm(FlaskForm):
    """Edits the value (and, for demands, the source) of a saved entry."""
    value = FloatField('Value', validators=[InputRequired(message="This field is required."), NumberRange(min=0)])
    source = StringField('Source', validators=[Optional()])
    submit = SubmitField('Save changes')
