# ==============================================================================
# run.py
# ------------------------------------------------------------------------------
# The main entry point to launch the Flask application.
# ==============================================================================

from runrate import create_app, db
from runrate.models import (AppSetting, Staff, Branch, ProductMetric, Target, BranchTarget,
                            DailyAchievementRecord, DesignationTarget, Projection, Demand)

# Create the Flask application instance using the factory function
app = create_app()

@app.shell_context_processor
def make_shell_context():
    """Provides a shell context for the `flask shell` command."""
    return {
        'db': db,
        'AppSetting': AppSetting,
        'Staff': Staff,
        'Branch': Branch,
        'ProductMetric': ProductMetric,
        'Target': Target,
        'BranchTarget': BranchTarget,
        'DailyAchievementRecord': DailyAchievementRecord,
        'DesignationTarget': DesignationTarget,
        'Projection': Projection,
        'Demand': Demand,
    }

if __name__ == '__main__':
    app.run(debug=True)
