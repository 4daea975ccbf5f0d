from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Item',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('item_type', models.CharField(choices=[('file', 'File'), ('folder', 'Folder')], max_length=32)),
                ('size', models.BigIntegerField(blank=True, help_text='File size in bytes (files only)', null=True)),
                ('mime_type', models.CharField(blank=True, default='', max_length=255)),
                ('url', models.CharField(blank=True, default='', help_text='Object storage url of the file content', max_length=2048)),
                ('content_source', models.CharField(
                    choices=[
                        ('user_upload', 'User upload'),
                        ('ai_generated', 'AI generated'),
                        ('marketplace_purchase', 'Marketplace purchase'),
                        ('shared_link', 'Shared link'),
                    ],
                    default='user_upload',
                    max_length=32,
                )),
                ('ai_status', models.CharField(
                    choices=[
                        ('none', 'None'),
                        ('pending', 'Pending'),
                        ('processing', 'Processing'),
                        ('completed', 'Completed'),
                        ('failed', 'Failed'),
                    ],
                    default='none',
                    max_length=32,
                )),
                ('ai_chunks_count', models.PositiveIntegerField(default=0)),
                ('ai_text_content', models.TextField(blank=True, default='')),
                ('ai_topics', models.JSONField(blank=True, default=list)),
                ('ai_processed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='items',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('parent', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='children',
                    to='drive.item',
                )),
            ],
            options={
                'verbose_name': 'Item',
                'verbose_name_plural': 'Items',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['owner', 'parent'], name='drive_owner_parent_idx'),
                    models.Index(fields=['url'], name='drive_url_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('parent', 'name', 'owner'), name='drive_parent_name_owner_unique'),
                    models.UniqueConstraint(
                        condition=models.Q(('parent__isnull', True)),
                        fields=('name', 'owner'),
                        name='drive_root_name_owner_unique',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(('item_type', 'folder'), ('size__isnull', False), _connector='OR'),
                        name='drive_file_has_size',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='AIChunk',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('text', models.TextField()),
                ('embedding', models.JSONField(default=list)),
                ('chunk_index', models.PositiveIntegerField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('item', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='ai_chunks',
                    to='drive.item',
                )),
            ],
            options={
                'verbose_name': 'AI Chunk',
                'verbose_name_plural': 'AI Chunks',
                'ordering': ['item', 'chunk_index'],
                'indexes': [
                    models.Index(fields=['item', 'chunk_index'], name='drive_chunk_item_index_idx'),
                ],
            },
        ),
    ]
