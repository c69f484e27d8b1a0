from marketplace.webhook.reconciler import WebhookOutcome, WebhookReceipt, WebhookReconciler

__all__ = ["WebhookOutcome", "WebhookReceipt", "WebhookReconciler"]
