from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Log",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(db_index=True, max_length=100)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("value", models.JSONField(blank=True, null=True)),
                ("details", models.TextField(blank=True)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="logs", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-timestamp"],
            },
        ),
        migrations.CreateModel(
            name="Feedback",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("rating", models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ("ease_of_use", models.CharField(blank=True, max_length=255)),
                ("features", models.CharField(blank=True, max_length=255)),
                ("performance", models.CharField(blank=True, max_length=255)),
                ("recommendation", models.CharField(blank=True, help_text="Would you recommend this system to others?", max_length=255)),
                ("comments", models.TextField(blank=True, help_text="Additional comments or suggestions")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(blank=True, help_text="User who submitted the feedback", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="feedbacks", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
