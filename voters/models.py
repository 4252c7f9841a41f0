from django.core.validators import RegexValidator
from django.db import models

KEY_CODE_LENGTH = 6

key_code_validator = RegexValidator(
    regex=r'^[A-Za-z0-9]{%d}$' % KEY_CODE_LENGTH,
    message=f"Key code must be exactly {KEY_CODE_LENGTH} alphanumeric characters",
)


class Voter(models.Model):
    """
    A registered voter identified by a single key code
    """
    name = models.CharField(max_length=255)
    key_code = models.CharField(
        max_length=KEY_CODE_LENGTH,
        unique=True,
        validators=[key_code_validator],
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def has_voted(self, election):
        return self.votes.filter(election=election).exists()

    def save(self, *args, **kwargs):
        # Key codes are case-insensitive; the stored form is uppercase.
        self.key_code = (self.key_code or '').upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.key_code})"

    class Meta:
        db_table = 'voters'
        ordering = ['name', 'id']
