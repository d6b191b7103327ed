from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import permisos.models.models_user


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('email', models.EmailField(max_length=255, unique=True)),
                ('first_name', models.CharField(blank=True, max_length=100)),
                ('last_name', models.CharField(blank=True, max_length=100)),
                ('account_type', models.CharField(choices=[('client', 'Client'), ('admin', 'Admin')], default='client', max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'users',
                'ordering': ['-created_at'],
            },
            managers=[
                ('objects', permisos.models.models_user.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='PermitApplication',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('PENDING_PAYMENT', 'Pago Pendiente'), ('PROOF_SUBMITTED', 'Comprobante Enviado'), ('PROOF_REJECTED', 'Comprobante Rechazado'), ('PAYMENT_RECEIVED', 'Pago Recibido'), ('PERMIT_READY', 'Permiso Listo'), ('COMPLETED', 'Completado'), ('CANCELLED', 'Cancelado'), ('EXPIRED', 'Expirado')], default='PENDING_PAYMENT', max_length=30)),
                ('nombre_completo', models.CharField(max_length=255)),
                ('curp_rfc', models.CharField(max_length=50, validators=[django.core.validators.RegexValidator('^[A-Za-z0-9]+$', 'Solo se permiten letras y números.')])),
                ('domicilio', models.TextField()),
                ('marca', models.CharField(max_length=100)),
                ('linea', models.CharField(max_length=100)),
                ('color', models.CharField(max_length=100)),
                ('numero_serie', models.CharField(max_length=50, validators=[django.core.validators.RegexValidator('^[A-Za-z0-9]+$', 'Solo se permiten letras y números.')])),
                ('numero_motor', models.CharField(max_length=50)),
                ('ano_modelo', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1900)])),
                ('importe', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('payment_reference', models.CharField(blank=True, max_length=100, null=True)),
                ('payment_proof_path', models.CharField(blank=True, max_length=512, null=True)),
                ('payment_proof_uploaded_at', models.DateTimeField(blank=True, null=True)),
                ('payment_verified_at', models.DateTimeField(blank=True, null=True)),
                ('payment_rejection_reason', models.TextField(blank=True, null=True)),
                ('desired_start_date', models.DateField(blank=True, null=True)),
                ('folio', models.CharField(blank=True, max_length=50, null=True, unique=True)),
                ('permit_file_path', models.CharField(blank=True, max_length=512, null=True)),
                ('fecha_expedicion', models.DateField(blank=True, null=True)),
                ('fecha_vencimiento', models.DateField(blank=True, null=True)),
                ('renewal_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('payment_verified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verified_applications', to=settings.AUTH_USER_MODEL)),
                ('renewed_from', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='renewals', to='permisos.permitapplication')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='applications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'permit_applications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'created_at'], name='permit_app_user_created_idx'),
                    models.Index(fields=['status'], name='permit_app_status_idx'),
                    models.Index(fields=['numero_serie'], name='permit_app_serie_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PaymentVerificationLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[('VERIFIED', 'Verified'), ('REJECTED', 'Rejected'), ('PERMIT_ISSUED', 'Permit issued'), ('STATUS_CHANGED', 'Status changed')], max_length=20)),
                ('previous_status', models.CharField(blank=True, max_length=30)),
                ('new_status', models.CharField(blank=True, max_length=30)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('application', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='verification_logs', to='permisos.permitapplication')),
                ('verified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verification_actions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'payment_verification_log',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['application', 'created_at'], name='pvl_app_created_idx'),
                    models.Index(fields=['action', 'created_at'], name='pvl_action_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PasswordResetToken',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('token', models.CharField(max_length=64, unique=True)),
                ('expires_at', models.DateTimeField()),
                ('used', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='password_reset_tokens', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'password_reset_tokens',
            },
        ),
        migrations.CreateModel(
            name='SecurityAuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action_type', models.CharField(max_length=100)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True)),
                ('details', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='security_events', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'security_audit_log',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['action_type', 'created_at'], name='sal_action_created_idx'),
                ],
            },
        ),
    ]
