import json
from runrate import db
from runrate.models import AppSetting, ProductMetric, DesignationTarget

DEFAULT_SETTINGS = {
    # key: [value, description, value_type]
    'TARGET_RECONCILIATION_POLICY': ['max', 'How zone/district managers combine staff KRAs with branch targets: "max" or "sum"', 'string'],
}

DEFAULT_METRICS = [
    # (name, category, kind)
    ('GRAND TOTAL AMT', 'GRAND TOTAL', 'Amount'),
    ('GRAND TOTAL AC', 'GRAND TOTAL', 'Account'),
    ('DDS AMT', 'DDS', 'Amount'),
    ('DDS AC', 'DDS', 'Account'),
    ('FD AMT', 'FD', 'Amount'),
    ('FD AC', 'FD', 'Account'),
    ('RD AMT', 'RD', 'Amount'),
    ('RD AC', 'RD', 'Account'),
    ('SAVS-AMT', 'SAVS', 'Amount'),
    ('SAVS-AC', 'SAVS', 'Account'),
    ('DAM AMT', 'DAM', 'Amount'),
    ('DAM AC', 'DAM', 'Account'),
    ('MIS AMT', 'MIS', 'Amount'),
    ('MIS AC', 'MIS', 'Account'),
    ('SMBG AMT', 'SMBG', 'Amount'),
    ('SMBG AC', 'SMBG', 'Account'),
    ('CUR-GOLD-AMT', 'CUR-GOLD', 'Amount'),
    ('CUR-GOLD-AC', 'CUR-GOLD', 'Account'),
    ('CUR-WEL-AMT', 'CUR-WEL', 'Amount'),
    ('CUR-WEL-AC', 'CUR-WEL', 'Account'),
    ('NEW-SS/AGNT', 'NEW-SS/AGNT', 'Other'),
    ('INSU AC', 'INSU', 'Account'),
    ('INSU AMT', 'INSU', 'Amount'),
    ('TASC AC', 'TASC', 'Account'),
    ('TASC AMT', 'TASC', 'Amount'),
    ('SHARE AC', 'SHARE', 'Account'),
    ('SHARE AMT', 'SHARE', 'Amount'),
]

DEFAULT_DESIGNATION_METRICS = {
    'BRANCH MANAGER': ['GRAND TOTAL AMT', 'GRAND TOTAL AC'],
    'ZONAL MANAGER': ['GRAND TOTAL AMT', 'GRAND TOTAL AC'],
    'DISTRICT HEAD': ['GRAND TOTAL AMT', 'GRAND TOTAL AC'],
    'SALES MANAGER-DDS': ['DDS AMT', 'DDS AC'],
    'SALES MANAGER-SMBG': ['SMBG AMT', 'SMBG AC'],
    'SALES MANAGER-CASA': ['SAVS-AMT', 'SAVS-AC', 'CUR-GOLD-AMT', 'CUR-GOLD-AC', 'CUR-WEL-AMT', 'CUR-WEL-AC'],
    'RO-CASA': ['SAVS-AMT', 'SAVS-AC'],
}

def seed_data():
    """Populates the database with default settings, the metric catalog and KRA assignments."""
    # Seed App Settings
    for key, data in DEFAULT_SETTINGS.items():
        setting = AppSetting.query.filter_by(key=key).first()
        if not setting: # Only add if it doesn't exist
            setting = AppSetting(key=key, value=data[0], description=data[1], value_type=data[2])
            db.session.add(setting)
            print(f'Seeding setting: {key}')

    # Seed the metric catalog
    if ProductMetric.query.count() == 0:
        print('Seeding default product metrics...')
        for name, category, kind in DEFAULT_METRICS:
            metric = ProductMetric(
                name=name, category=category, kind=kind,
                unit_of_measure='INR' if kind == 'Amount' else 'Units',
                contributes_to_overall_goals=True
            )
            db.session.add(metric)

    for designation, metrics in DEFAULT_DESIGNATION_METRICS.items():
        if not DesignationTarget.query.filter_by(designation=designation).first():
            db.session.add(DesignationTarget(designation=designation,
                                             metrics_json=json.dumps(metrics, ensure_ascii=False)))

    db.session.commit()
    print('Seeding complete.')
