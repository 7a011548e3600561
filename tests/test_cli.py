import pandas as pd

import cli
from models import Member


def test_add_and_list(app, capsys):
    assert cli.main(['add', '--name', 'Pham D', '--phone', '0944', '--plan', '3 tháng - Basic'], app=app) == 0
    out = capsys.readouterr().out
    assert 'Added Pham D' in out
    assert cli.main(['list'], app=app) == 0
    assert 'Pham D' in capsys.readouterr().out


def test_add_duplicate_phone(app, capsys):
    cli.main(['add', '--name', 'Pham D', '--phone', '0944'], app=app)
    assert cli.main(['add', '--name', 'Other', '--phone', '0944'], app=app) == 3
    assert 'phone' in capsys.readouterr().out
    with app.app_context():
        assert Member.query.count() == 1


def test_export_csv(app, tmp_path):
    cli.main(['add', '--name', 'Pham D', '--phone', '0944', '--plan', '6 tháng - Standard'], app=app)
    out = tmp_path / 'members.csv'
    assert cli.main(['export', '--out', str(out)], app=app) == 0
    df = pd.read_csv(out)
    assert list(df['name']) == ['Pham D']
    assert list(df['plan']) == ['6 tháng - Standard']
    assert 'daysRemaining' in df.columns


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert 'usage' in capsys.readouterr().out
