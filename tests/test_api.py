"""
HTTP API Tests

Exercise the blueprints through the Flask test client with bearer tokens.
No app context is held open between requests.
"""

import io

from models import db, ActivityLog, Loop, User


def upload_template(client, admin_headers, content=b'Buyer: {{buyer}} Price: {{price}}',
                    filename='agreement.txt', mimetype='text/plain', **fields):
    data = {'name': 'Purchase Agreement', 'category': 'contract'}
    data.update(fields)
    data['template'] = (io.BytesIO(content), filename, mimetype)
    return client.post('/api/admin/templates', data=data, headers=admin_headers,
                       content_type='multipart/form-data')


class TestAuth:

    def test_login_returns_token(self, client, api_agent):
        response = client.post('/api/auth/login', json={
            'email': 'AGENT@test.com', 'password': 'password123'
        })
        assert response.status_code == 200
        token = response.get_json()['token']

        profile = client.get('/api/auth/profile', headers={'Authorization': f'Bearer {token}'})
        assert profile.get_json()['user']['email'] == 'agent@test.com'

    def test_bad_password(self, client, api_agent):
        response = client.post('/api/auth/login', json={
            'email': 'agent@test.com', 'password': 'wrong'
        })
        assert response.status_code == 401

    def test_login_validation(self, client):
        response = client.post('/api/auth/login', json={'email': 'nope'})
        assert response.status_code == 400
        assert 'password' in response.get_json()['errors']

    def test_requires_token(self, client):
        response = client.get('/api/loops')
        assert response.status_code == 401
        assert response.get_json()['success'] is False

    def test_garbage_token_rejected(self, client):
        response = client.get('/api/loops', headers={'Authorization': 'Bearer not-a-token'})
        assert response.status_code == 401

    def test_suspended_user_rejected(self, app, client, api_agent):
        with app.app_context():
            db.session.get(User, api_agent.id).suspended = True
            db.session.commit()

        assert client.get('/api/loops', headers=api_agent.headers).status_code == 401
        response = client.post('/api/auth/login', json={
            'email': 'agent@test.com', 'password': 'password123'
        })
        assert response.status_code == 403

    def test_change_password(self, client, api_agent):
        response = client.put('/api/auth/password', headers=api_agent.headers, json={
            'current_password': 'password123', 'new_password': 'a-better-password'
        })
        assert response.status_code == 200

        response = client.post('/api/auth/login', json={
            'email': 'agent@test.com', 'password': 'a-better-password'
        })
        assert response.status_code == 200


class TestLoopRoutes:

    def test_create_and_fetch(self, client, api_agent):
        response = client.post('/api/loops', headers=api_agent.headers, json={
            'type': 'Purchase',
            'property_address': '10 River Rd',
            'sale': 310000,
            'status': 'closed',
        })
        assert response.status_code == 201
        loop = response.get_json()['loop']
        assert loop['status'] == 'sold'
        assert loop['creator_id'] == api_agent.id

        fetched = client.get(f"/api/loops/{loop['id']}", headers=api_agent.headers)
        assert fetched.get_json()['loop']['property_address'] == '10 River Rd'

    def test_validation_errors(self, client, api_agent):
        response = client.post('/api/loops', headers=api_agent.headers, json={'sale': 'lots'})
        assert response.status_code == 400
        body = response.get_json()
        assert set(body['errors']) >= {'type', 'property_address', 'sale'}

    def test_agents_are_scoped_to_their_loops(self, client, api_agent, api_other_agent):
        created = client.post('/api/loops', headers=api_agent.headers, json={
            'type': 'Lease', 'property_address': '11 River Rd'
        }).get_json()['loop']

        assert client.get('/api/loops', headers=api_other_agent.headers).get_json()['count'] == 0
        assert client.get(f"/api/loops/{created['id']}",
                          headers=api_other_agent.headers).status_code == 403
        assert client.get('/api/loops/999', headers=api_agent.headers).status_code == 404

    def test_partial_update(self, client, api_agent):
        created = client.post('/api/loops', headers=api_agent.headers, json={
            'type': 'Lease', 'property_address': '12 River Rd', 'notes': 'original'
        }).get_json()['loop']

        response = client.patch(f"/api/loops/{created['id']}", headers=api_agent.headers,
                                json={'client_name': 'Pat Tenant'})

        loop = response.get_json()['loop']
        assert loop['client_name'] == 'Pat Tenant'
        assert loop['notes'] == 'original'

    def test_delete_and_archive_are_admin_only(self, app, client, api_admin, api_agent):
        created = client.post('/api/loops', headers=api_agent.headers, json={
            'type': 'Lease', 'property_address': '13 River Rd'
        }).get_json()['loop']
        url = f"/api/loops/{created['id']}"

        assert client.delete(url, headers=api_agent.headers).status_code == 403
        assert client.post(f'{url}/archive', headers=api_agent.headers).status_code == 403

        assert client.post(f'{url}/archive', headers=api_admin.headers).get_json()['loop']['archived']
        archived = client.get('/api/loops?archived=true', headers=api_admin.headers).get_json()
        assert [l['id'] for l in archived['loops']] == [created['id']]

        assert client.delete(url, headers=api_admin.headers).status_code == 200
        with app.app_context():
            assert db.session.get(Loop, created['id']) is None

    def test_images_upload_serve_and_delete(self, client, api_agent):
        response = client.post('/api/loops', headers=api_agent.headers, data={
            'type': 'Purchase',
            'property_address': '14 River Rd',
            'images': [(io.BytesIO(b'\x89PNG fake'), 'front.png', 'image/png')],
        }, content_type='multipart/form-data')
        loop = response.get_json()['loop']
        stored = loop['images'][0]['filename']

        image = client.get(f"/api/loops/{loop['id']}/images/{stored}", headers=api_agent.headers)
        assert image.status_code == 200
        assert image.data == b'\x89PNG fake'

        deleted = client.delete(f"/api/loops/{loop['id']}/images/{stored}", headers=api_agent.headers)
        assert deleted.get_json()['loop']['images'] == []

    def test_stats_and_closing(self, client, api_agent):
        client.post('/api/loops', headers=api_agent.headers, json={
            'type': 'Purchase', 'property_address': '15 River Rd', 'sale': 1000
        })

        stats = client.get('/api/loops/stats', headers=api_agent.headers).get_json()['stats']
        assert stats['total'] == 1
        assert stats['total_sales'] == 1000.0

        closing = client.get('/api/loops/closing?days=7', headers=api_agent.headers)
        assert closing.get_json()['count'] == 0

    def test_csv_export(self, client, api_agent):
        client.post('/api/loops', headers=api_agent.headers, json={
            'type': 'Purchase', 'property_address': '16 River Rd'
        })

        response = client.get('/api/loops/export/csv', headers=api_agent.headers)

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert 'attachment' in response.headers['Content-Disposition']
        lines = response.data.decode().splitlines()
        assert lines[0].startswith('ID,Type,Property Address')
        assert '16 River Rd' in lines[1]

    def test_pdf_export(self, client, api_agent):
        created = client.post('/api/loops', headers=api_agent.headers, json={
            'type': 'Purchase', 'property_address': '17 River Rd'
        }).get_json()['loop']

        response = client.get(f"/api/loops/{created['id']}/export/pdf", headers=api_agent.headers)

        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')


class TestTemplateRoutes:

    def test_agent_forbidden(self, client, api_agent):
        assert client.get('/api/admin/templates', headers=api_agent.headers).status_code == 403
        assert upload_template(client, api_agent.headers).status_code == 403

    def test_upload_and_map(self, client, api_admin):
        response = upload_template(client, api_admin.headers)
        assert response.status_code == 201
        template = response.get_json()['template']
        assert template['file_type'] == 'doc'
        assert template['fields_mapped'] is False

        response = client.put(f"/api/admin/templates/{template['id']}/fields",
                              headers=api_admin.headers, json={'mappings': [
                                  {'name': 'buyer', 'loopField': 'client_name', 'type': 'text'},
                                  {'name': 'price', 'loopField': 'sale', 'type': 'currency'},
                              ]})
        assert response.status_code == 200
        assert response.get_json()['fields_mapped'] is True

        detail = client.get(f"/api/admin/templates/{template['id']}", headers=api_admin.headers)
        assert len(detail.get_json()['template']['field_mappings']) == 2

    def test_invalid_mappings_rejected(self, client, api_admin):
        template = upload_template(client, api_admin.headers).get_json()['template']

        response = client.put(f"/api/admin/templates/{template['id']}/fields",
                              headers=api_admin.headers, json={'mappings': [
                                  {'name': 'buyer', 'loopField': 'password_hash', 'type': 'text'},
                              ]})

        assert response.status_code == 400
        assert 'mappings[0]' in response.get_json()['errors']

    def test_missing_mappings_keep_stored_set(self, client, api_admin):
        template = upload_template(client, api_admin.headers).get_json()['template']
        url = f"/api/admin/templates/{template['id']}/fields"
        client.put(url, headers=api_admin.headers, json={'mappings': [
            {'name': 'buyer', 'loopField': 'client_name', 'type': 'text'},
        ]})

        for body in ({}, {'mapping': []}, ['not', 'an', 'object']):
            response = client.put(url, headers=api_admin.headers, json=body)
            assert response.status_code == 400
            assert 'mappings' in response.get_json()['errors']

        detail = client.get(f"/api/admin/templates/{template['id']}", headers=api_admin.headers)
        stored = detail.get_json()['template']
        assert stored['fields_mapped'] is True
        assert [m['name'] for m in stored['field_mappings']] == ['buyer']

    def test_fields_key_accepted(self, client, api_admin):
        template = upload_template(client, api_admin.headers).get_json()['template']

        response = client.put(f"/api/admin/templates/{template['id']}/fields",
                              headers=api_admin.headers, json={'fields': [
                                  {'name': 'client_name', 'loopField': 'client_name', 'type': 'text'},
                              ]})

        body = response.get_json()
        assert response.status_code == 200
        assert body['fields_mapped'] is True
        assert body['mappings'][0]['loopField'] == 'client_name'

    def test_explicit_empty_list_clears(self, client, api_admin):
        template = upload_template(client, api_admin.headers).get_json()['template']
        url = f"/api/admin/templates/{template['id']}/fields"
        client.put(url, headers=api_admin.headers, json={'mappings': [
            {'name': 'buyer', 'loopField': 'client_name', 'type': 'text'},
        ]})

        response = client.put(url, headers=api_admin.headers, json={'mappings': []})

        assert response.status_code == 200
        assert response.get_json()['fields_mapped'] is False

    def test_upload_rejects_bad_files(self, client, api_admin):
        response = upload_template(client, api_admin.headers, filename='photo.png',
                                   mimetype='image/png')
        assert response.status_code == 400

        response = upload_template(client, api_admin.headers, category='poetry')
        assert response.status_code == 400
        assert 'category' in response.get_json()['errors']

    def test_update_and_delete(self, client, api_admin):
        template = upload_template(client, api_admin.headers).get_json()['template']
        url = f"/api/admin/templates/{template['id']}"

        response = client.put(url, headers=api_admin.headers,
                              json={'name': 'Renamed', 'category': 'listing'})
        assert response.get_json()['template']['name'] == 'Renamed'

        assert client.get(f'{url}/preview', headers=api_admin.headers).status_code == 200
        assert client.delete(url, headers=api_admin.headers).status_code == 200
        assert client.get(url, headers=api_admin.headers).status_code == 404

    def test_options(self, client, api_admin):
        body = client.get('/api/admin/templates/options', headers=api_admin.headers).get_json()
        assert 'client_name' in body['loop_fields']
        assert 'currency' in body['field_types']


class TestDocumentRoutes:

    def _mapped_template(self, client, api_admin):
        template = upload_template(client, api_admin.headers).get_json()['template']
        client.put(f"/api/admin/templates/{template['id']}/fields",
                   headers=api_admin.headers, json={'mappings': [
                       {'name': 'buyer', 'loopField': 'client_name', 'type': 'text'},
                       {'name': 'price', 'loopField': 'sale', 'type': 'currency'},
                   ]})
        return template

    def test_generate_list_and_download(self, app, client, api_admin, api_agent):
        template = self._mapped_template(client, api_admin)
        loop = client.post('/api/loops', headers=api_agent.headers, json={
            'type': 'Purchase', 'property_address': '20 Bay St',
            'client_name': 'Jane Buyer', 'sale': 350000,
        }).get_json()['loop']

        available = client.get('/api/documents/templates', headers=api_agent.headers).get_json()
        assert [t['id'] for t in available['templates']] == [template['id']]

        response = client.post('/api/documents/generate', headers=api_agent.headers,
                               json={'templateId': template['id'], 'loopId': loop['id']})
        assert response.status_code == 200
        result = response.get_json()
        assert result['success'] is True
        assert result['fields_replaced'] == 2

        listing = client.get(f"/api/documents/loop/{loop['id']}", headers=api_agent.headers)
        assert [d['file_name'] for d in listing.get_json()['documents']] == [result['file_name']]

        download = client.get(f"/api/documents/download/{result['file_name']}",
                              headers=api_agent.headers)
        assert download.data == b'Buyer: Jane Buyer Price: $350,000.00'

        with app.app_context():
            assert ActivityLog.query.filter_by(action_type=ActivityLog.DOCUMENT_GENERATED).count() == 1

    def test_generate_requires_ids(self, client, api_agent):
        response = client.post('/api/documents/generate', headers=api_agent.headers, json={})
        assert response.status_code == 400
        assert set(response.get_json()['errors']) == {'templateId', 'loopId'}

    def test_unmapped_template_rejected(self, client, api_admin):
        template = upload_template(client, api_admin.headers).get_json()['template']
        loop = client.post('/api/loops', headers=api_admin.headers, json={
            'type': 'Purchase', 'property_address': '21 Bay St'
        }).get_json()['loop']

        response = client.post('/api/documents/generate', headers=api_admin.headers,
                               json={'templateId': template['id'], 'loopId': loop['id']})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Template has no field mappings'

    def test_other_agents_cannot_reach_documents(self, client, api_admin, api_agent, api_other_agent):
        template = self._mapped_template(client, api_admin)
        loop = client.post('/api/loops', headers=api_agent.headers, json={
            'type': 'Purchase', 'property_address': '22 Bay St'
        }).get_json()['loop']
        file_name = client.post('/api/documents/generate', headers=api_agent.headers, json={
            'templateId': template['id'], 'loopId': loop['id']
        }).get_json()['file_name']

        headers = api_other_agent.headers
        assert client.post('/api/documents/generate', headers=headers, json={
            'templateId': template['id'], 'loopId': loop['id']
        }).status_code == 403
        assert client.get(f"/api/documents/loop/{loop['id']}", headers=headers).status_code == 403
        assert client.get(f'/api/documents/download/{file_name}', headers=headers).status_code == 403
        assert client.delete(f'/api/documents/{file_name}', headers=api_agent.headers).status_code == 403

    def test_download_rejects_traversal(self, client, api_admin):
        response = client.get('/api/documents/download/..%2Fconfig.py', headers=api_admin.headers)
        assert response.status_code == 404

    def test_admin_deletes_generated(self, client, api_admin):
        template = self._mapped_template(client, api_admin)
        loop = client.post('/api/loops', headers=api_admin.headers, json={
            'type': 'Purchase', 'property_address': '23 Bay St'
        }).get_json()['loop']
        file_name = client.post('/api/documents/generate', headers=api_admin.headers, json={
            'templateId': template['id'], 'loopId': loop['id']
        }).get_json()['file_name']

        assert client.delete(f'/api/documents/{file_name}', headers=api_admin.headers).status_code == 200
        assert client.get(f'/api/documents/download/{file_name}',
                          headers=api_admin.headers).status_code == 404


class TestAdminRoutes:

    def test_agent_forbidden(self, client, api_agent):
        for url in ('/api/admin/users', '/api/admin/activity-logs', '/api/admin/users/export'):
            assert client.get(url, headers=api_agent.headers).status_code == 403

    def test_suspend_via_api(self, client, api_admin, api_agent):
        response = client.post(f'/api/admin/users/{api_agent.id}/suspend', headers=api_admin.headers)
        assert response.get_json()['user']['suspended'] is True
        assert client.get('/api/loops', headers=api_agent.headers).status_code == 401

        response = client.post(f'/api/admin/users/{api_admin.id}/suspend', headers=api_admin.headers)
        assert response.status_code == 400

    def test_import_csv(self, client, api_admin):
        data = {'file': (io.BytesIO(b'username,email\nNew Agent,new@test.com\nBad,bad\n'), 'users.csv')}
        response = client.post('/api/admin/users/import', headers=api_admin.headers,
                               data=data, content_type='multipart/form-data')

        results = response.get_json()['results']
        assert results['successful'] == 1
        assert results['failed'] == 1
        assert results['errors'][0]['line'] == 3

    def test_import_requires_csv_file(self, client, api_admin):
        data = {'file': (io.BytesIO(b'{}'), 'users.json')}
        response = client.post('/api/admin/users/import', headers=api_admin.headers,
                               data=data, content_type='multipart/form-data')
        assert response.status_code == 400

    def test_activity_logs(self, client, api_admin, api_agent):
        client.post('/api/loops', headers=api_agent.headers, json={
            'type': 'Purchase', 'property_address': '30 Hill St'
        })

        body = client.get('/api/admin/activity-logs?action_type=LOOP_CREATED',
                          headers=api_admin.headers).get_json()
        assert body['count'] == 1

        stats = client.get('/api/admin/activity-logs/stats', headers=api_admin.headers).get_json()
        assert stats['stats']['by_type']['LOOP_CREATED'] == 1

        bad = client.get('/api/admin/activity-logs?start_date=yesterday', headers=api_admin.headers)
        assert bad.status_code == 400

        export = client.get('/api/admin/activity-logs/export', headers=api_admin.headers)
        assert export.data.decode().startswith('ID,Date,User')

        cleared = client.delete('/api/admin/activity-logs', headers=api_admin.headers).get_json()
        assert cleared['count'] >= 1


class TestSettingsRoutes:

    def test_get_settings(self, client, api_agent):
        body = client.get('/api/settings', headers=api_agent.headers).get_json()
        assert body['settings'] == {'notify_on_new_loops': True, 'notify_on_updated_loops': True}

    def test_admin_updates_notifications(self, client, api_admin):
        response = client.put('/api/settings/notifications', headers=api_admin.headers,
                              json={'notify_on_updated_loops': False})
        assert response.get_json()['settings']['notify_on_updated_loops'] is False

    def test_agent_cannot_update_notifications(self, client, api_agent):
        response = client.put('/api/settings/notifications', headers=api_agent.headers,
                              json={'notify_on_new_loops': False})
        assert response.status_code == 403
