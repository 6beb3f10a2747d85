"""
Tests for Contractors API endpoints.

Business Rules:
- Contractors are scoped to the clinic; phone numbers are unique per clinic
- A contractor with linked documents cannot be deleted
"""
import pytest

from apps.contractors.models import Contractor


@pytest.fixture
def contractor(clinic):
    return Contractor.objects.create(
        clinic=clinic,
        last_name='Sidorov',
        first_name='Petr',
        fathers_name='Ivanovich',
        phone_number='79995550001',
    )


@pytest.mark.django_db
class TestContractorList:

    def test_lists_own_clinic_only(self, clinic_client, contractor, other_clinic):
        Contractor.objects.create(clinic=other_clinic, last_name='Orlov', first_name='Ilya', phone_number='79995550009')

        response = clinic_client.get('/api/v1/contractors/')

        assert response.status_code == 200
        assert len(response.data) == 1
        assert response.data[0]['full_name'] == 'Sidorov Petr Ivanovich'

    def test_filter_by_phone_substring(self, clinic, clinic_client, contractor):
        Contractor.objects.create(clinic=clinic, last_name='Orlov', first_name='Ilya', phone_number='79000000000')

        response = clinic_client.get('/api/v1/contractors/', {'phone_number': '5550'})

        assert [c['id'] for c in response.data] == [str(contractor.id)]

    def test_patient_forbidden(self, patient_client):
        response = patient_client.get('/api/v1/contractors/')

        assert response.status_code == 403


@pytest.mark.django_db
class TestContractorCreate:

    def test_create(self, clinic, clinic_client):
        response = clinic_client.post('/api/v1/contractors/', {
            'last_name': 'Orlov',
            'first_name': 'Ilya',
            'phone_number': '79995550009',
        }, format='json')

        assert response.status_code == 201
        assert Contractor.objects.get(pk=response.data['id']).clinic == clinic

    def test_duplicate_phone_in_clinic(self, clinic_client, contractor):
        response = clinic_client.post('/api/v1/contractors/', {
            'last_name': 'Orlov',
            'first_name': 'Ilya',
            'phone_number': contractor.phone_number,
        }, format='json')

        assert response.status_code == 400
        assert 'phone_number' in response.data

    def test_same_phone_in_other_clinic(self, other_clinic_client, contractor):
        response = other_clinic_client.post('/api/v1/contractors/', {
            'last_name': 'Sidorov',
            'first_name': 'Petr',
            'phone_number': contractor.phone_number,
        }, format='json')

        assert response.status_code == 201


@pytest.mark.django_db
class TestContractorDelete:

    def test_delete_without_documents(self, clinic_client, contractor):
        response = clinic_client.delete(f'/api/v1/contractors/{contractor.id}/')

        assert response.status_code == 204
        assert not Contractor.objects.filter(pk=contractor.pk).exists()

    def test_delete_with_documents_is_blocked(self, clinic_client, contractor, make_document):
        contractor.documents.add(make_document())

        response = clinic_client.delete(f'/api/v1/contractors/{contractor.id}/')

        assert response.status_code == 400
        assert Contractor.objects.filter(pk=contractor.pk).exists()

    def test_other_clinic_gets_404(self, other_clinic_client, contractor):
        response = other_clinic_client.delete(f'/api/v1/contractors/{contractor.id}/')

        assert response.status_code == 404


@pytest.mark.django_db
def test_contractor_documents(clinic_client, contractor, make_document):
    doc = make_document()
    contractor.documents.add(doc)

    response = clinic_client.get(f'/api/v1/contractors/{contractor.id}/documents/')

    assert response.status_code == 200
    assert response.data['contractor']['id'] == str(contractor.id)
    assert [d['id'] for d in response.data['documents']] == [str(doc.id)]
