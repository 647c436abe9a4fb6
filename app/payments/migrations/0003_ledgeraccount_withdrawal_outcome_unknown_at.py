from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0002_withdrawal_reconciliation_schedule"),
    ]

    operations = [
        migrations.CreateModel(
            name="LedgerAccount",
            fields=[
                (
                    "user_id",
                    models.UUIDField(help_text="Owner of the account", primary_key=True, serialize=False),
                ),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, help_text="Timestamp when the account row was created"),
                ),
            ],
            options={
                "verbose_name": "Ledger account",
                "verbose_name_plural": "Ledger accounts",
            },
        ),
        migrations.AddField(
            model_name="withdrawal",
            name="outcome_unknown_at",
            field=models.DateTimeField(
                blank=True,
                help_text="When a transfer request last went unanswered; the transfer may exist",
                null=True,
            ),
        ),
    ]
