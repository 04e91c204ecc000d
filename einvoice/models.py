from django.db import models


class DocumentSequence(models.Model):
    """Last issued sequence number per (sales point, document kind)."""

    sales_point = models.PositiveIntegerField()
    document_kind = models.CharField(max_length=20, db_index=True)  # INVOICE, CREDIT_NOTE, DEBIT_NOTE
    last_number = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Document Sequence"
        verbose_name_plural = "Document Sequences"
        unique_together = [["sales_point", "document_kind"]]

    def __str__(self):
        return f"{self.document_kind}-{self.sales_point:05d}-{self.last_number:08d}"
