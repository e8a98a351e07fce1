from imposter import db
from imposter.models import Account
from imposter.services.games import accounts


def _seed(*names):
    db.session.add_all([Account(username=n) for n in names])
    db.session.commit()


def test_credit_xp_grants_coins_per_threshold(flask_app):
    _seed('Ann')
    assert accounts.credit_xp('Ann', 45) is True
    ann = accounts.get_account('Ann')
    assert (ann.xp, ann.coins) == (45, 0)
    accounts.credit_xp('Ann', 60)
    assert (ann.xp, ann.coins) == (105, 20)


def test_credits_skip_unknown_accounts(flask_app):
    assert accounts.credit_xp('ghost', 10) is False
    assert accounts.credit_currency('ghost', 10) is False
    assert accounts.record_round([('ghost', 10, True)]) == 0


def test_credit_currency(flask_app):
    _seed('Ben')
    assert accounts.credit_currency('Ben', 25) is True
    assert accounts.get_account('Ben').coins == 25
    assert accounts.credit_currency('Ben', 0) is False


def test_record_round_books_points_and_wins(flask_app):
    _seed('Ann', 'Ben')
    touched = accounts.record_round([('Ann', 15, True), ('Ben', -5, False), ('Cat', 2, False)])
    assert touched == 2
    ann, ben = accounts.get_account('Ann'), accounts.get_account('Ben')
    assert (ann.games_played, ann.games_won, ann.total_points, ann.xp) == (1, 1, 15, 15)
    assert (ben.games_played, ben.games_won, ben.total_points, ben.xp) == (1, 0, -5, 0)


def test_identity_header_and_me_endpoint(client):
    _seed('Ann')
    with client.application.test_request_context(headers={'X-Username': ' Ann '}):
        assert accounts.get_current_identity() == 'Ann'
    assert accounts.get_current_identity() is None

    res = client.get('/api/accounts/me', headers={'X-Username': 'Ann'})
    assert res.status_code == 200
    assert res.get_json()['username'] == 'Ann'
    assert client.get('/api/accounts/me').status_code == 404
    assert client.get('/api/accounts/nobody').status_code == 404


def test_db_reset_command_seeds_accounts(flask_app):
    result = flask_app.test_cli_runner().invoke(args=['db-reset'])
    assert result.exit_code == 0
    assert sorted(a.username for a in Account.query.all()) == ['testuser1', 'testuser2', 'testuser3']
