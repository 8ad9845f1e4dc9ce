import uuid
from django.db import models


class LiveQuerySet(models.QuerySet):
    def live(self):
        return self.filter(deleted_at__isnull=True)


class LiveManager(models.Manager.from_queryset(LiveQuerySet)):
    """Manager that hides soft-deleted rows.

    Repositories read through ``objects`` so the deletion filter is applied
    once, here, instead of on every query.
    """

    def get_queryset(self):
        return super().get_queryset().live()


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Status(models.TextChoices):
        ACTIVE = "active"
        INACTIVE = "inactive"
        OUT_OF_STOCK = "out_of_stock"

    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, unique=True, null=True, blank=True)
    # null price: only sold through external_url
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    # null quantity: unlimited / not stock-managed
    quantity = models.PositiveIntegerField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    external_url = models.URLField(max_length=500, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    all_objects = models.Manager()
    objects = LiveManager()

    class Meta:
        db_table = "products"
        ordering = ["-created_at"]
        default_manager_name = "all_objects"
        base_manager_name = "all_objects"

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        # The ledger filters on external_url IS NULL; never store "".
        if not self.external_url:
            self.external_url = None
        super().save(*args, **kwargs)
