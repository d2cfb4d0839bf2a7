"""Run-summary notifiers."""

from venue_refresh.providers.notify.telegram_notifier import TelegramNotifier

__all__ = ["TelegramNotifier"]
