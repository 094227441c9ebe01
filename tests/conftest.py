# tests/conftest.py

import pytest

from runrate.calculator import domain
from runrate.seed import DEFAULT_METRICS


@pytest.fixture
def app_with_db(tmp_path):
    """
    Creates a new app instance for a test, sets up an in-memory database,
    and yields the app within an application context.
    """
    from config import Config
    from runrate import create_app, db
    from runrate.calculator.engine import CalculationConfig

    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
        WTF_CSRF_ENABLED = False
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    app = create_app(TestConfig)
    CalculationConfig._instance = None

    with app.app_context():
        db.create_all()
        yield app  # The tests will run here
        db.session.remove()
        db.drop_all()
    CalculationConfig._instance = None


@pytest.fixture
def seeded_app(app_with_db):
    """The test app with the default metric catalog and settings loaded."""
    from runrate.seed import seed_data
    seed_data()
    return app_with_db


@pytest.fixture
def client(seeded_app):
    return seeded_app.test_client()


# --- Plain engine fixtures (no database) ---

@pytest.fixture
def metrics():
    return [
        domain.ProductMetric(name=name, category=category, kind=kind,
                             unit_of_measure='INR' if kind == 'Amount' else 'Units')
        for name, category, kind in DEFAULT_METRICS
    ]


@pytest.fixture
def org_staff():
    """
    ZM1 (zone ZONE-A)
    ├── DH1 (district head, manages NER)
    │   └── BM1 (manager, NER)
    │       └── 3937 PANKAJ MEHAKAR (NER)
    └── BM2 (manager, WARDHA ROAD)
        └── 4001 TRISHUL KOSHTI (WARDHA ROAD)
    BM3 (manager, PUNE CAMP, zone ZONE-B) reports to nobody.
    """
    S = domain.StaffMember
    return [
        S('A1', 'HEAD OFFICE', 'ADMINISTRATOR', branch_name='N/A'),
        S('ZM1', 'RAJESH KULKARNI', 'ZONAL MANAGER', branch_name='N/A', zone='ZONE-A',
          managed_zones=('ZONE-A',)),
        S('DH1', 'SUNITA DESHMUKH', 'DISTRICT HEAD', branch_name='N/A', reports_to='ZM1',
          managed_branches=('NER',)),
        S('BM1', 'ANITA RAO', 'BRANCH MANAGER', branch_name='NER', zone='ZONE-A', reports_to='DH1'),
        S('3937', 'PANKAJ MEHAKAR', 'RO-CASA', branch_name='NER', zone='ZONE-A', reports_to='BM1'),
        S('BM2', 'VIKAS JAIN', 'BRANCH MANAGER', branch_name='WARDHA ROAD', zone='ZONE-A', reports_to='ZM1'),
        S('4001', 'TRISHUL KOSHTI', 'RO-CASA', branch_name='WARDHA ROAD', zone='ZONE-A', reports_to='BM2'),
        S('BM3', 'MEERA SHAH', 'BRANCH MANAGER', branch_name='PUNE CAMP', zone='ZONE-B'),
    ]


@pytest.fixture
def org_branches():
    B = domain.Branch
    return [
        B('NER', zone='ZONE-A', manager_code='BM1'),
        B('WARDHA ROAD', zone='ZONE-A', manager_code='BM2'),
        B('PUNE CAMP', zone='ZONE-B', manager_code='BM3'),
    ]


@pytest.fixture
def make_snapshot(metrics, org_staff, org_branches):
    """Builds a store.Snapshot over the sample organisation with the given targets."""
    from runrate.store import Snapshot

    def _make(targets=(), branch_targets=(), staff=None, branches=None):
        return Snapshot(
            staff=org_staff if staff is None else staff,
            branches=org_branches if branches is None else branches,
            metrics=metrics,
            targets=targets,
            branch_targets=branch_targets,
        )
    return _make


@pytest.fixture
def sample_records():
    """Report rows in upload shape for July 2024."""
    return [
        {'DATE': '20/07/2024', 'STAFF NAME': 'PANKAJ MEHAKAR', 'BRANCH NAME': 'NER',
         'DDS AMT': 670000, 'DDS AC': 5, 'GRAND TOTAL AMT': 670000, 'GRAND TOTAL AC': 5},
        {'DATE': '21/07/2024', 'STAFF NAME': 'PANKAJ MEHAKAR', 'BRANCH NAME': 'NER',
         'FD AMT': 410000, 'FD AC': 4, 'GRAND TOTAL AMT': 410000, 'GRAND TOTAL AC': 4},
        {'DATE': '20/07/2024', 'STAFF NAME': 'TRISHUL KOSHTI', 'BRANCH NAME': 'WARDHA ROAD',
         'RD AMT': 55000, 'RD AC': 2, 'GRAND TOTAL AMT': 55000, 'GRAND TOTAL AC': 2},
        {'DATE': '20/07/2024', 'STAFF NAME': 'MEERA SHAH', 'BRANCH NAME': 'PUNE CAMP',
         'SAVS-AMT': 90000, 'SAVS-AC': 3, 'GRAND TOTAL AMT': 90000, 'GRAND TOTAL AC': 3},
    ]
