import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Voter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('key_code', models.CharField(max_length=6, unique=True, validators=[django.core.validators.RegexValidator(message='Key code must be exactly 6 alphanumeric characters', regex='^[A-Za-z0-9]{6}$')])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'voters',
                'ordering': ['name', 'id'],
            },
        ),
    ]
