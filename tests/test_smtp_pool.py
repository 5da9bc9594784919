from email.message import EmailMessage

import aiosmtplib
import pytest

from lms_email.smtp_pool import SMTPParams, SMTPPool
from lms_email.transport import MailTransport


class DummySMTP:
    def __init__(self, hostname, port, start_tls=False, use_tls=False, timeout=None):
        self.hostname = hostname
        self.port = port
        self.start_tls = start_tls
        self.use_tls = use_tls
        self.timeout = timeout
        self.login_credentials = None
        self.connected = False
        self.closed = False
        self.alive = True
        self.sent = []
        self.raise_error: Exception | None = None

    async def connect(self):
        self.connected = True

    async def login(self, user, password):
        self.login_credentials = (user, password)

    async def noop(self):
        if not self.alive:
            raise RuntimeError("Connection dead")
        return 250, b"OK"

    async def send_message(self, message):
        if self.raise_error:
            raise self.raise_error
        self.sent.append(message)

    async def quit(self):
        self.closed = True


@pytest.fixture(autouse=True)
def patch_aiosmtplib(monkeypatch):
    created = []

    def factory(**kwargs):
        smtp = DummySMTP(**kwargs)
        created.append(smtp)
        return smtp

    monkeypatch.setattr("lms_email.smtp_pool.aiosmtplib.SMTP", factory)
    return created


PARAMS = SMTPParams("smtp.local", 25, "user", "pass")


@pytest.mark.asyncio
async def test_get_connection_reuses_active_instance():
    pool = SMTPPool(ttl=30)
    smtp1 = await pool.get_connection(PARAMS)
    smtp2 = await pool.get_connection(PARAMS)

    assert smtp1 is smtp2
    assert smtp1.login_credentials == ("user", "pass")


@pytest.mark.asyncio
async def test_different_params_get_different_connections():
    pool = SMTPPool(ttl=30)
    smtp1 = await pool.get_connection(PARAMS)
    smtp2 = await pool.get_connection(SMTPParams("smtp.other", 25))

    assert smtp1 is not smtp2
    assert smtp2.login_credentials is None


@pytest.mark.asyncio
async def test_get_connection_discards_expired_instance():
    pool = SMTPPool(ttl=-1)
    smtp1 = await pool.get_connection(SMTPParams("smtp.local", 25))
    smtp2 = await pool.get_connection(SMTPParams("smtp.local", 25))

    assert smtp1.closed is True
    assert smtp2 is not smtp1


@pytest.mark.asyncio
async def test_get_connection_replaces_dead_instance():
    pool = SMTPPool(ttl=30)
    smtp1 = await pool.get_connection(PARAMS)
    smtp1.alive = False

    smtp2 = await pool.get_connection(PARAMS)
    assert smtp2 is not smtp1
    assert smtp1.closed is True


@pytest.mark.asyncio
async def test_cleanup_removes_dead_connections(monkeypatch):
    pool = SMTPPool(ttl=1)
    smtp = await pool.get_connection(PARAMS)

    async def fake_is_alive(_smtp):
        return False

    monkeypatch.setattr(pool, "_is_alive", fake_is_alive)

    await pool.cleanup()
    assert smtp.closed is True
    assert pool.pool == {}


@pytest.mark.asyncio
async def test_get_connection_respects_tls_flags():
    pool = SMTPPool(ttl=30)
    smtp = await pool.get_connection(SMTPParams("smtp.secure", 465, use_tls=True))
    assert smtp.use_tls is True
    assert smtp.start_tls is False

    upgraded = await pool.get_connection(SMTPParams("smtp.relay", 587, start_tls=True))
    assert upgraded.start_tls is True
    assert upgraded.use_tls is False


@pytest.mark.asyncio
async def test_close_quits_everything():
    pool = SMTPPool()
    smtp = await pool.get_connection(PARAMS)
    await pool.close()
    assert smtp.closed is True
    assert pool.pool == {}


def _message() -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = "lms-noreply@iu.edu"
    msg["To"] = "student@iu.edu"
    msg["Subject"] = "Hi"
    msg.set_content("Body")
    return msg


@pytest.mark.asyncio
async def test_transport_sends_through_pool(patch_aiosmtplib):
    transport = MailTransport("smtp.local", 25)
    msg = _message()

    await transport.send(msg)
    await transport.send(msg)

    assert len(patch_aiosmtplib) == 1
    assert patch_aiosmtplib[0].sent == [msg, msg]


@pytest.mark.asyncio
async def test_transport_errors_propagate_and_drop_connection(patch_aiosmtplib):
    transport = MailTransport("smtp.local", 25)
    await transport.send(_message())
    smtp = patch_aiosmtplib[0]
    error = aiosmtplib.SMTPRecipientsRefused([])
    smtp.raise_error = error

    with pytest.raises(aiosmtplib.SMTPRecipientsRefused) as excinfo:
        await transport.send(_message())

    assert excinfo.value is error
    assert smtp.closed is True
    assert transport.pool.pool == {}


@pytest.mark.asyncio
async def test_transport_cleans_pool_before_each_send(monkeypatch):
    transport = MailTransport("smtp.local", 25)
    calls = []
    original_cleanup = transport.pool.cleanup

    async def tracking_cleanup():
        calls.append(True)
        await original_cleanup()

    monkeypatch.setattr(transport.pool, "cleanup", tracking_cleanup)

    await transport.send(_message())
    await transport.send(_message())

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_transport_replaces_dead_connection(patch_aiosmtplib):
    transport = MailTransport("smtp.local", 25)
    await transport.send(_message())
    patch_aiosmtplib[0].alive = False

    await transport.send(_message())

    assert patch_aiosmtplib[0].closed is True
    assert len(patch_aiosmtplib) == 2
    assert len(patch_aiosmtplib[1].sent) == 1
