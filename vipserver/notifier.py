"""
notifier.py - Best-effort Telegram notifications for the operations chat.

Messages are sent in background tasks. A failed send is logged and dropped;
it never blocks or fails the operation that triggered it.
"""

import asyncio
import logging
from typing import Optional, Set

import httpx

logger = logging.getLogger("notifier")

TELEGRAM_API_URL = "https://api.telegram.org"
SEND_TIMEOUT = 10.0

STATUS_LABELS = {
    "pending": "⏳ Pending manual review",
    "processing": "🔄 Processing",
    "completed": "✅ Completed",
    "rejected": "❌ Rejected",
    "error": "⚠️ Payout error",
}


class TelegramNotifier:
    """Fire-and-forget sender for the admin chat. No-op without a bot token."""

    def __init__(
        self,
        bot_token: str = "",
        chat_id: str = "",
        dashboard_url: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._dashboard_url = dashboard_url
        self._transport = transport
        self._tasks: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    def notify(self, text: str):
        if not self.enabled:
            return
        task = asyncio.create_task(self._send(text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, text: str):
        url = f"{TELEGRAM_API_URL}/bot{self._bot_token}/sendMessage"
        payload = {"chat_id": self._chat_id, "text": text, "parse_mode": "Markdown"}
        try:
            async with httpx.AsyncClient(timeout=SEND_TIMEOUT, transport=self._transport) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
        except Exception:
            logger.exception("Telegram notification failed")

    async def drain(self):
        """Wait for in-flight sends (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def notify_withdrawal_created(self, profile: dict, withdrawal: dict):
        text = (
            "🔔 *New withdrawal request awaiting review*\n\n"
            f"👤 User: {profile.get('username') or 'unknown'}\n"
            f"📧 Email: {profile.get('email', '')}\n"
            f"💰 Amount: ${withdrawal['amount_usd']:.2f}\n"
            f"🪙 Currency: {withdrawal['currency']} ({withdrawal['network']})\n"
            f"🏦 Wallet: `{withdrawal['wallet_address']}`\n"
            f"📊 Status: {STATUS_LABELS['pending']}"
        )
        if self._dashboard_url:
            text += f"\n\n🔗 [Admin dashboard]({self._dashboard_url})"
        self.notify(text)

    def notify_withdrawal_status(self, withdrawal: dict, status: str, detail: str = ""):
        text = (
            "📣 *Withdrawal status changed*\n\n"
            f"🆔 `{withdrawal['id']}`\n"
            f"💰 Amount: ${withdrawal['amount_usd']:.2f} {withdrawal['currency']}\n"
            f"📊 Status: {STATUS_LABELS.get(status, status)}"
        )
        if detail:
            text += f"\n📝 {detail}"
        self.notify(text)
