import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import marketplace.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("email", models.EmailField(max_length=254, unique=True, verbose_name="email address")),
                ("auth_id", models.UUIDField(blank=True, null=True, unique=True, verbose_name="auth service id")),
                ("display_name", models.CharField(blank=True, default="", max_length=100, verbose_name="display name")),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "ordering": ["-date_joined"],
            },
            managers=[
                ("objects", marketplace.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name="Listing",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=200, verbose_name="title")),
                ("price_eur", models.PositiveIntegerField(blank=True, null=True, verbose_name="price (EUR)")),
                ("category", models.CharField(choices=[("car", "Car"), ("part", "Part"), ("memorabilia", "Memorabilia")], default="car", max_length=20, verbose_name="category")),
                ("location", models.CharField(blank=True, max_length=200, verbose_name="location")),
                ("condition", models.CharField(blank=True, choices=[("New", "New"), ("Used", "Used"), ("Refurbished", "Refurbished")], max_length=20, verbose_name="condition")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("photo_urls", models.JSONField(blank=True, default=list, verbose_name="photo URLs")),
                ("status", models.CharField(choices=[("active", "Active"), ("sold", "Sold")], default="active", max_length=10)),
                ("sold_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("owner", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="listings", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["owner", "status"], name="listing_owner_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="MessageThread",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("last_message_at", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("buyer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="buyer_threads", to=settings.AUTH_USER_MODEL)),
                ("listing", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="threads", to="marketplace.listing")),
                ("seller", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="seller_threads", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-last_message_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("listing", "buyer"), name="unique_thread_per_listing_buyer"),
                    models.CheckConstraint(condition=models.Q(("buyer", models.F("seller")), _negated=True), name="thread_buyer_is_not_seller"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("body", models.TextField(max_length=2000)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("sender", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sent_messages", to=settings.AUTH_USER_MODEL)),
                ("thread", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="messages", to="marketplace.messagethread")),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [models.Index(fields=["thread", "created_at"], name="message_thread_created_idx")],
            },
        ),
    ]
